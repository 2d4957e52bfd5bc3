from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ParsingMethod(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"
    HYBRID = "hybrid"


# Seconds allowed per question; never taken from the caller or the model.
TIME_LIMITS = {
    Difficulty.EASY: 20,
    Difficulty.MEDIUM: 60,
    Difficulty.HARD: 120,
}

QUESTIONS_PER_DIFFICULTY = {
    Difficulty.EASY: 2,
    Difficulty.MEDIUM: 2,
    Difficulty.HARD: 2,
}

QUESTION_COUNT = sum(QUESTIONS_PER_DIFFICULTY.values())

MAX_FEEDBACK_ITEMS = 3
PENDING_FEEDBACK = "Pending evaluation"

REQUIRED_PROFILE_FIELDS = ("name", "email", "phone")
OPTIONAL_PROFILE_FIELDS = ("location", "skills", "experience", "education")
PROFILE_TEXT_FIELDS = (
    "name", "email", "phone", "location", "experience",
    "education", "summary", "job_title",
)
PROFILE_LIST_FIELDS = ("links", "skills", "certifications", "languages", "projects")


class Question(BaseModel):
    id: str
    text: str = Field(..., min_length=1)
    difficulty: Difficulty
    time_limit_seconds: int = Field(0, description="Derived from difficulty")
    category: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_time_limit(cls, data: Any) -> Any:
        if isinstance(data, dict):
            try:
                difficulty = Difficulty(data.get("difficulty"))
            except (ValueError, TypeError):
                return data  # field validation reports the bad difficulty
            data = dict(data)
            data["time_limit_seconds"] = TIME_LIMITS[difficulty]
        return data


class Answer(BaseModel):
    question_id: str
    text: str = ""
    time_spent_seconds: int = Field(0, ge=0)
    score: float = Field(0.0, ge=0, le=10)
    feedback: str = PENDING_FEEDBACK
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)

    @field_validator("strengths", "improvements")
    @classmethod
    def _limit_items(cls, value: List[str]) -> List[str]:
        return value[:MAX_FEEDBACK_ITEMS]

    def with_evaluation(
        self,
        score: float,
        feedback: str,
        strengths: Sequence[str],
        improvements: Sequence[str],
    ) -> "Answer":
        """Return a validated copy of this answer carrying an evaluation."""
        data = self.model_dump()
        data.update(
            score=score,
            feedback=feedback,
            strengths=list(strengths),
            improvements=list(improvements),
        )
        return Answer.model_validate(data)


class QuickEvaluation(BaseModel):
    score: float = Field(..., ge=0, le=10)
    feedback: str
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)


class EvaluationResult(BaseModel):
    overall_score: float = Field(..., ge=0, le=10)
    per_answer: List[Answer]

    @classmethod
    def from_answers(cls, answers: Sequence[Answer]) -> "EvaluationResult":
        """Build a result whose overall score is the two-decimal mean of the answers."""
        answers = list(answers)
        if not answers:
            return cls(overall_score=0.0, per_answer=[])
        mean = sum(answer.score for answer in answers) / len(answers)
        return cls(overall_score=round(mean, 2), per_answer=answers)


class ResumeProfile(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    links: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    experience: Optional[str] = None
    education: Optional[str] = None
    certifications: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    projects: Optional[List[str]] = None
    summary: Optional[str] = None
    job_title: Optional[str] = None
    parsing_method: ParsingMethod = ParsingMethod.FALLBACK
    confidence: float = Field(0.0, ge=0, le=1)

    @computed_field
    @property
    def missing_fields(self) -> List[str]:
        return [
            field
            for field in REQUIRED_PROFILE_FIELDS + OPTIONAL_PROFILE_FIELDS
            if not getattr(self, field)
        ]

    def profile_fields(self) -> Dict[str, Any]:
        """Extracted values only, without parsing metadata."""
        return {
            field: getattr(self, field)
            for field in PROFILE_TEXT_FIELDS + PROFILE_LIST_FIELDS
        }
