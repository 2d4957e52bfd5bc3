"""
Process-wide entry points.

The engine is built on first use from ``config/interview.yaml`` and the
environment, then shared. Only ``evaluate_answers`` raises, and only
``InvalidArgument`` for bad caller input.
"""
from functools import lru_cache
from typing import List, Optional, Sequence

from .engine import InterviewEngine
from .schemas import Answer, EvaluationResult, Question, QuickEvaluation, ResumeProfile


@lru_cache(maxsize=1)
def get_engine() -> InterviewEngine:
    return InterviewEngine.from_settings()


def reset_engine() -> None:
    """Drop the shared engine so the next call rebuilds it from current configuration."""
    get_engine.cache_clear()


def generate_questions(
    candidate_name: str,
    resume_text: Optional[str] = None,
    resume_profile: Optional[ResumeProfile] = None,
) -> List[Question]:
    return get_engine().generate_questions(candidate_name, resume_text, resume_profile)


def evaluate_answers(questions: Sequence[Question], answers: Sequence[Answer]) -> EvaluationResult:
    return get_engine().evaluate_answers(questions, answers)


def quick_evaluate(question: Question, answer: Answer) -> QuickEvaluation:
    return get_engine().quick_evaluate(question, answer)


def generate_summary(answers: Sequence[Answer], final_score: float) -> str:
    return get_engine().generate_summary(answers, final_score)


def parse_resume_text(raw_text: str) -> ResumeProfile:
    return get_engine().parse_resume_text(raw_text)
