"""
Answer scoring.

``evaluate_answers`` tries one batch request for all answers, then one request
per answer, then the heuristic for whichever answers are still unscored. The
model's output is positional, so a batch is only trusted when it returns one
well-formed evaluation per answer.
"""
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import fallback
from .config import RetrySettings
from .errors import ExhaustedError, ExtractionError, InterviewEngineError, InvalidArgument
from .extractor import extract_structured
from .gateway import ResilientCompletionGateway
from .prompts import PromptBuilder
from .schemas import MAX_FEEDBACK_ITEMS, Answer, EvaluationResult, Question, QuickEvaluation

logger = logging.getLogger('answer_evaluator')

MIN_SCORE = 1.0
MAX_SCORE = 10.0

DEFAULT_FEEDBACK = 'Answer evaluated.'
DEFAULT_STRENGTHS = ['Good effort']
DEFAULT_IMPROVEMENTS = ['Add more detail']
QUICK_DEFAULT_FEEDBACK = 'Good response!'
QUICK_DEFAULT_STRENGTHS = ['Response provided']
QUICK_DEFAULT_IMPROVEMENTS = ['Keep practicing']

Pair = Tuple[Question, Answer]


def _numeric_score(value: Any) -> Optional[float]:
    """The model's score as a finite float, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        score = float(value)
    elif isinstance(value, str):
        try:
            score = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return score if math.isfinite(score) else None


def clamp_score(score: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def _string_list(value: Any, default: List[str], limit: int) -> List[str]:
    if not isinstance(value, list):
        return list(default)
    items = [str(item).strip() for item in value if isinstance(item, (str, int, float)) and str(item).strip()]
    return items[:limit] or list(default)


def _require_score(entry: Any) -> float:
    if not isinstance(entry, dict):
        raise ExtractionError("Evaluation entry is not an object")
    score = _numeric_score(entry.get('score'))
    if score is None:
        raise ExtractionError(f"Evaluation entry has no numeric score: {entry.get('score')!r}")
    return clamp_score(score)


class AnswerEvaluator:
    def __init__(self, gateway: ResilientCompletionGateway, retry: Optional[RetrySettings] = None):
        self.gateway = gateway
        self.retry = retry or RetrySettings()

    # ----------------------------------------------------------- full set

    def evaluate_answers(self, questions: Sequence[Question], answers: Sequence[Answer]) -> EvaluationResult:
        """
        Score every answer and aggregate.

        Raises:
            InvalidArgument: empty input, unequal lengths or unknown question ids
        """
        pairs = self._pair(questions, answers)
        logger.info(f"Evaluating {len(pairs)} answers")

        try:
            evaluated = self._evaluate_batch(pairs)
            logger.info("Batch evaluation succeeded")
            return EvaluationResult.from_answers(evaluated)
        except ExhaustedError as e:
            if e.rate_limited:
                logger.warning(f"AI service unavailable, scoring all answers with backup analysis: {e}")
                return EvaluationResult.from_answers(
                    fallback.evaluate_answers([q for q, _ in pairs], [a for _, a in pairs], service_unavailable=True)
                )
            logger.warning(f"Batch evaluation failed, evaluating individually: {e}")
        except InterviewEngineError as e:
            logger.warning(f"Batch evaluation rejected, evaluating individually: {e}")
        except Exception as e:
            logger.error(f"Unexpected batch evaluation error: {e}", exc_info=True)

        return EvaluationResult.from_answers(self._evaluate_individually(pairs))

    @staticmethod
    def _pair(questions: Sequence[Question], answers: Sequence[Answer]) -> List[Pair]:
        if not questions or not answers:
            raise InvalidArgument("Questions and answers must not be empty")
        if len(questions) != len(answers):
            raise InvalidArgument(
                f"Got {len(questions)} questions but {len(answers)} answers"
            )
        by_id: Dict[str, Question] = {question.id: question for question in questions}
        seen = set()
        pairs = []
        for answer in answers:
            question = by_id.get(answer.question_id)
            if question is None:
                raise InvalidArgument(f"Answer references unknown question id '{answer.question_id}'")
            if answer.question_id in seen:
                raise InvalidArgument(f"Question id '{answer.question_id}' is answered twice")
            seen.add(answer.question_id)
            pairs.append((question, answer))
        return pairs

    def _evaluate_batch(self, pairs: List[Pair]) -> List[Answer]:
        prompt = PromptBuilder.batch_evaluation_prompt(pairs)
        raw = self.gateway.complete_with_resilience(prompt, self.retry.batch_evaluation)
        data = extract_structured(raw, 'object')

        evaluations = data.get('evaluations')
        if not isinstance(evaluations, list):
            raise ExtractionError("Batch response has no 'evaluations' array")
        if len(evaluations) != len(pairs):
            raise ExtractionError(
                f"Batch response has {len(evaluations)} evaluations for {len(pairs)} answers"
            )

        scores = [_require_score(entry) for entry in evaluations]
        return [
            self._apply(answer, entry, score)
            for (_, answer), entry, score in zip(pairs, evaluations, scores)
        ]

    def _evaluate_individually(self, pairs: List[Pair]) -> List[Answer]:
        evaluated = []
        for number, (question, answer) in enumerate(pairs, start=1):
            try:
                evaluated.append(self._evaluate_one(question, answer))
                continue
            except ExhaustedError as e:
                logger.warning(f"Answer {number}: AI evaluation exhausted, using backup analysis: {e}")
                service_unavailable = e.rate_limited
            except InterviewEngineError as e:
                logger.warning(f"Answer {number}: AI evaluation failed, using backup analysis: {e}")
                service_unavailable = False
            except Exception as e:
                logger.error(f"Answer {number}: unexpected evaluation error: {e}", exc_info=True)
                service_unavailable = False
            evaluated.append(fallback.evaluate_answer(answer, question.time_limit_seconds, service_unavailable))
        return evaluated

    def _evaluate_one(self, question: Question, answer: Answer) -> Answer:
        prompt = PromptBuilder.answer_evaluation_prompt(question, answer)
        raw = self.gateway.complete_with_resilience(prompt, self.retry.individual_evaluation)
        entry = extract_structured(raw, 'object')
        return self._apply(answer, entry, _require_score(entry))

    @staticmethod
    def _apply(answer: Answer, entry: Dict[str, Any], score: float) -> Answer:
        feedback = entry.get('feedback')
        if not isinstance(feedback, str) or not feedback.strip():
            feedback = DEFAULT_FEEDBACK
        return answer.with_evaluation(
            score=score,
            feedback=feedback.strip(),
            strengths=_string_list(entry.get('strengths'), DEFAULT_STRENGTHS, MAX_FEEDBACK_ITEMS),
            improvements=_string_list(entry.get('improvements'), DEFAULT_IMPROVEMENTS, MAX_FEEDBACK_ITEMS),
        )

    # -------------------------------------------------------------- quick

    def quick_evaluate(self, question: Question, answer: Answer) -> QuickEvaluation:
        """Low-latency single evaluation; any failure returns the heuristic at once."""
        try:
            prompt = PromptBuilder.quick_evaluation_prompt(question, answer)
            raw = self.gateway.complete_with_resilience(prompt, self.retry.quick_evaluation)
            entry = extract_structured(raw, 'object')
            score = _require_score(entry)
        except ExhaustedError as e:
            logger.warning(f"Quick evaluation exhausted, using backup analysis: {e}")
            return fallback.quick_evaluation(question, answer, service_unavailable=e.rate_limited)
        except InterviewEngineError as e:
            logger.warning(f"Quick evaluation failed, using backup analysis: {e}")
            return fallback.quick_evaluation(question, answer)
        except Exception as e:
            logger.error(f"Unexpected quick evaluation error: {e}", exc_info=True)
            return fallback.quick_evaluation(question, answer)

        feedback = entry.get('feedback')
        if not isinstance(feedback, str) or not feedback.strip():
            feedback = QUICK_DEFAULT_FEEDBACK
        return QuickEvaluation(
            score=score,
            feedback=feedback.strip(),
            strengths=_string_list(entry.get('strengths'), QUICK_DEFAULT_STRENGTHS, 1),
            improvements=_string_list(entry.get('improvements'), QUICK_DEFAULT_IMPROVEMENTS, 1),
        )
