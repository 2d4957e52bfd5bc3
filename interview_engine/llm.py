import logging
from typing import Protocol, Tuple

import groq
import requests
from groq import Groq

from .config import Credential, LLMSettings, Settings
from .errors import ServiceError

logger = logging.getLogger('llm_client')


class CompletionClient(Protocol):
    """One credential's view of the text-generation service."""

    label: str

    def complete(self, prompt: str) -> str: ...


class GroqCompletionClient:
    """Chat completion against Groq. Retries are left to the gateway."""

    def __init__(self, credential: Credential, settings: LLMSettings):
        self.label = credential.label
        self.model = settings.model_name
        self.temperature = settings.temperature
        self.max_tokens = settings.max_tokens
        self.client = Groq(
            api_key=credential.api_key,
            timeout=settings.timeout_seconds,
            max_retries=0,
        )
        logger.info(f"Initialized Groq client '{self.label}' for model {self.model}")

    def complete(self, prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                messages=[{"role": "user", "content": prompt}],
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except groq.APITimeoutError as e:
            raise ServiceError(None, f"timeout: {e}") from e
        except groq.APIConnectionError as e:
            raise ServiceError(None, f"connection error: {e}") from e
        except groq.APIStatusError as e:
            raise ServiceError(e.status_code, str(e)) from e
        except groq.APIError as e:
            raise ServiceError(None, str(e)) from e

        if not response or not response.choices:
            raise ServiceError(None, "empty response")
        content = response.choices[0].message.content
        if not content:
            raise ServiceError(None, "empty response")
        return content


class GeminiCompletionClient:
    """``generateContent`` call to the Gemini REST API."""

    def __init__(self, credential: Credential, settings: LLMSettings):
        self.label = credential.label
        self.api_key = credential.api_key
        self.model = settings.model_name
        self.url = f"{settings.gemini_base_url.rstrip('/')}/models/{self.model}:generateContent"
        self.timeout = settings.timeout_seconds
        self.generation_config = {
            "temperature": settings.temperature,
            "maxOutputTokens": settings.max_tokens,
        }
        logger.info(f"Initialized Gemini client '{self.label}' for model {self.model}")

    def complete(self, prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": self.generation_config,
        }
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        try:
            response = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise ServiceError(None, f"timeout: {e}") from e
        except requests.ConnectionError as e:
            raise ServiceError(None, f"connection error: {e}") from e
        except requests.RequestException as e:
            raise ServiceError(None, str(e)) from e

        if response.status_code >= 400:
            raise ServiceError(response.status_code, self._error_reason(response))

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(None, "response body is not JSON") from e
        text = self._candidate_text(data)
        if not text:
            raise ServiceError(None, "empty response")
        return text

    @staticmethod
    def _error_reason(response: requests.Response) -> str:
        try:
            error = response.json().get("error", {})
            message = error.get("message") or error.get("status")
            if message:
                return str(message)
        except (ValueError, AttributeError):
            pass
        return (response.reason or response.text or "unknown error")[:200]

    @staticmethod
    def _candidate_text(data) -> str:
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return ""
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


PROVIDERS = {
    'groq': GroqCompletionClient,
    'gemini': GeminiCompletionClient,
}


def build_clients(settings: Settings) -> Tuple[CompletionClient, ...]:
    """One client per configured credential, primary first."""
    client_cls = PROVIDERS.get(settings.llm.provider)
    if client_cls is None:
        raise ValueError(f"Unsupported LLM provider '{settings.llm.provider}'")
    return tuple(client_cls(credential, settings.llm) for credential in settings.credentials)
