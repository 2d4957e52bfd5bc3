import logging
from typing import Sequence

from . import fallback
from .errors import ExhaustedError, InterviewEngineError
from .evaluator import DEFAULT_FEEDBACK
from .gateway import ResilientCompletionGateway
from .prompts import PromptBuilder
from .schemas import PENDING_FEEDBACK, Answer

logger = logging.getLogger('summary_generator')

PLACEHOLDER_FEEDBACK = {PENDING_FEEDBACK.lower(), DEFAULT_FEEDBACK.lower()}


def has_ai_feedback(answers: Sequence[Answer]) -> bool:
    """True when at least one answer carries substantive model-written feedback."""
    for answer in answers:
        feedback = (answer.feedback or '').strip()
        if not feedback or feedback.lower() in PLACEHOLDER_FEEDBACK:
            continue
        if fallback.is_fallback_feedback(feedback):
            continue
        return True
    return False


def scored_while_unavailable(answers: Sequence[Answer]) -> bool:
    return any(fallback.SERVICE_UNAVAILABLE_PREFIX in (answer.feedback or '') for answer in answers)


class SummaryGenerator:
    def __init__(self, gateway: ResilientCompletionGateway, max_retries: int = 1):
        self.gateway = gateway
        self.max_retries = max_retries

    def generate(self, answers: Sequence[Answer], final_score: float) -> str:
        answers = list(answers)
        unavailable = scored_while_unavailable(answers)

        if final_score == 0 or not has_ai_feedback(answers):
            logger.info("Evaluation came from backup analysis, using templated summary (saving API call)")
            return fallback.fallback_summary(answers, final_score, unavailable)

        try:
            prompt = PromptBuilder.summary_prompt(answers, final_score)
            text = self.gateway.complete_with_resilience(prompt, self.max_retries)
        except ExhaustedError as e:
            logger.warning(f"Summary generation exhausted, using templated summary: {e}")
            return fallback.fallback_summary(answers, final_score, unavailable or e.rate_limited)
        except InterviewEngineError as e:
            logger.warning(f"Summary generation failed, using templated summary: {e}")
            return fallback.fallback_summary(answers, final_score, unavailable)
        except Exception as e:
            logger.error(f"Unexpected summary generation error: {e}", exc_info=True)
            return fallback.fallback_summary(answers, final_score, unavailable)

        text = (text or '').strip()
        if not text:
            logger.warning("Model returned an empty summary, using templated summary")
            return fallback.fallback_summary(answers, final_score, unavailable)
        logger.info("AI summary generated")
        return text
