"""
Resilient access to the completion service.

The gateway walks an immutable, ordered tuple of completion clients (one per
credential). Each credential gets a fixed number of attempts; retryable
failures back off exponentially with jitter, fatal failures move straight to
the next credential. Only when every credential is used up does the caller
see an ``ExhaustedError``.
"""
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .config import RetrySettings
from .errors import ExhaustedError, InvalidArgument, ServiceError
from .llm import CompletionClient

logger = logging.getLogger('llm_gateway')

DEFAULT_MAX_RETRIES = 2

HIGH_DEMAND_MESSAGE = (
    "AI service is experiencing temporary high demand (rate limited or unavailable). "
    "Please retry later."
)

RATE_LIMIT_MARKERS = (
    'rate limit', 'rate_limit', 'ratelimit', 'quota', 'too many requests',
    'resource_exhausted', 'resource exhausted',
)
UNAVAILABLE_MARKERS = ('service unavailable', 'unavailable', 'overloaded')
TRANSIENT_MARKERS = (
    'timeout', 'timed out', 'deadline exceeded', 'connection', 'network',
    'reset by peer', 'econnreset', 'bad gateway',
)
TRANSIENT_STATUSES = {408, 500, 502, 504}


class ErrorClass(str, Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


# Failure kinds reported by classify_error
RATE_LIMIT = 'rate_limit'
UNAVAILABLE = 'unavailable'
TRANSIENT = 'transient'
FATAL = 'fatal'
HIGH_DEMAND_KINDS = (RATE_LIMIT, UNAVAILABLE)


@dataclass(frozen=True)
class CompletionAttempt:
    credential_index: int
    attempt_number: int
    error_class: ErrorClass
    delay_millis: int
    rate_limited: bool = False


def classify_error(error: Exception) -> Tuple[ErrorClass, str]:
    """Return the retry class of a failed completion and the kind of failure."""
    status = getattr(error, 'status', None)
    message = str(error).lower()

    if status == 429 or any(marker in message for marker in RATE_LIMIT_MARKERS):
        return ErrorClass.RETRYABLE, RATE_LIMIT
    if status == 503:
        return ErrorClass.RETRYABLE, UNAVAILABLE
    if status is not None and 400 <= status < 500 and status != 408:
        return ErrorClass.FATAL, FATAL
    if any(marker in message for marker in UNAVAILABLE_MARKERS):
        return ErrorClass.RETRYABLE, UNAVAILABLE
    if status in TRANSIENT_STATUSES or any(marker in message for marker in TRANSIENT_MARKERS):
        return ErrorClass.RETRYABLE, TRANSIENT
    return ErrorClass.FATAL, FATAL


class ResilientCompletionGateway:
    def __init__(
        self,
        clients: Sequence[CompletionClient],
        retry: Optional[RetrySettings] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ):
        self.clients = tuple(clients)
        self.retry = retry or RetrySettings()
        self.sleep = sleep
        self.rng = rng
        if not self.clients:
            logger.warning("Gateway created without credentials - every completion will fail over to fallback")

    def backoff_delay(self, attempt: int, kind: str) -> int:
        """Milliseconds to wait after the given failed attempt (1-based)."""
        base = self.retry.rate_limit_base_ms if kind == RATE_LIMIT else self.retry.transient_base_ms
        jitter = self.rng() * self.retry.jitter_ms
        return int(min(self.retry.max_delay_ms, base * (2 ** attempt) + jitter))

    def complete_with_resilience(self, prompt: str, max_retries_per_credential: Optional[int] = None) -> str:
        max_attempts = DEFAULT_MAX_RETRIES if max_retries_per_credential is None else max_retries_per_credential
        if max_attempts < 1:
            raise InvalidArgument("max_retries_per_credential must be at least 1")
        if not self.clients:
            raise ExhaustedError("No AI service credentials configured")

        attempts: List[CompletionAttempt] = []
        last_error: Optional[Exception] = None

        for index, client in enumerate(self.clients):
            for attempt in range(1, max_attempts + 1):
                try:
                    logger.info(f"Completion attempt {attempt}/{max_attempts} with {client.label} credential")
                    text = client.complete(prompt)
                    logger.info(f"Completion succeeded with {client.label} credential")
                    return text
                except ServiceError as e:
                    error = e
                except Exception as e:
                    logger.debug(f"Unexpected client failure on {client.label} credential", exc_info=True)
                    error = ServiceError(None, f"unexpected client error: {e}")

                last_error = error
                error_class, kind = classify_error(error)
                will_retry = error_class is ErrorClass.RETRYABLE and attempt < max_attempts
                delay = self.backoff_delay(attempt, kind) if will_retry else 0
                attempts.append(CompletionAttempt(
                    credential_index=index,
                    attempt_number=attempt,
                    error_class=error_class,
                    delay_millis=delay,
                    rate_limited=kind in HIGH_DEMAND_KINDS,
                ))

                if error_class is ErrorClass.FATAL:
                    logger.warning(f"Non-retryable error with {client.label} credential: {error}")
                    break
                logger.warning(f"Attempt {attempt}/{max_attempts} with {client.label} credential failed ({kind}): {error}")
                if not will_retry:
                    break
                logger.info(f"Waiting {delay}ms before retry...")
                self.sleep(delay / 1000.0)

            if index + 1 < len(self.clients):
                logger.info(f"Switching from {client.label} to {self.clients[index + 1].label} credential")

        rate_limited = any(a.rate_limited for a in attempts)
        if rate_limited:
            message = HIGH_DEMAND_MESSAGE
        else:
            message = f"AI service request failed after {len(attempts)} attempts: {last_error}"
        logger.error(f"All credentials exhausted: {message}")
        raise ExhaustedError(message, rate_limited=rate_limited, attempts=attempts)
