import logging
import random
import string
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from . import fallback
from .errors import ExtractionError, InterviewEngineError
from .extractor import extract_structured
from .gateway import ResilientCompletionGateway
from .prompts import PromptBuilder
from .schemas import QUESTIONS_PER_DIFFICULTY, Difficulty, Question, ResumeProfile

logger = logging.getLogger('question_generator')


class QuestionGenerator:
    """Six interview questions, two per difficulty tier, from the model or the fallback pool."""

    def __init__(
        self,
        gateway: ResilientCompletionGateway,
        max_retries: int = 2,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.max_retries = max_retries
        self.rng = rng or random.Random()
        self.clock = clock

    def _session_id(self) -> str:
        return ''.join(self.rng.choices(string.ascii_lowercase + string.digits, k=6))

    def generate(
        self,
        candidate_name: str,
        resume_text: Optional[str] = None,
        resume_profile: Optional[ResumeProfile] = None,
    ) -> List[Question]:
        session_id = self._session_id()
        skills = resume_profile.skills if resume_profile else None
        prompt = PromptBuilder.question_prompt(
            candidate_name,
            session_id=session_id,
            timestamp=self.clock(),
            skills=skills,
            resume_text=resume_text,
        )
        logger.info(f"Generating questions for session {session_id}")

        try:
            raw = self.gateway.complete_with_resilience(prompt, self.max_retries)
            items = self._extract_items(raw)
        except InterviewEngineError as e:
            logger.warning(f"Question generation failed, using fallback pool: {e}")
            return fallback.select_questions(self.rng)
        except Exception as e:
            logger.error(f"Unexpected error generating questions: {e}", exc_info=True)
            return fallback.select_questions(self.rng)

        return self._shape(items, session_id)

    @staticmethod
    def _wrapped_questions(raw: str) -> Optional[List[Any]]:
        try:
            data = extract_structured(raw, 'object')
        except ExtractionError:
            return None
        items = data.get('questions')
        return items if isinstance(items, list) else None

    @classmethod
    def _extract_items(cls, raw: str) -> List[Any]:
        """Accept an object wrapping a ``questions`` array, or a bare array."""
        # Wrapper first: other array fields in it must not be read as the questions
        items = cls._wrapped_questions(raw)
        if items is not None:
            return items
        return extract_structured(raw, 'array')

    def _shape(self, items: List[Any], session_id: str) -> List[Question]:
        tiers: Dict[Difficulty, List[Question]] = {difficulty: [] for difficulty in QUESTIONS_PER_DIFFICULTY}
        seen = set()
        dropped = 0

        for item in items:
            question = self._to_question(item, session_id, len(seen) + 1)
            if question is None:
                dropped += 1
                continue
            key = question.text.lower()
            bucket = tiers[question.difficulty]
            if key in seen or len(bucket) >= QUESTIONS_PER_DIFFICULTY[question.difficulty]:
                dropped += 1
                continue
            seen.add(key)
            bucket.append(question)

        if dropped:
            logger.info(f"Dropped {dropped} invalid, duplicate or surplus questions from model output")

        questions: List[Question] = []
        for difficulty, count in QUESTIONS_PER_DIFFICULTY.items():
            bucket = tiers[difficulty]
            missing = count - len(bucket)
            if missing > 0:
                logger.info(f"Padding {missing} {difficulty.value} question(s) from fallback pool")
                bucket.extend(fallback.draw_questions(difficulty, missing, exclude_texts=seen, rng=self.rng))
            questions.extend(bucket)
        return questions

    @staticmethod
    def _to_question(item: Any, session_id: str, number: int) -> Optional[Question]:
        if not isinstance(item, dict):
            return None
        text = item.get('text') or item.get('question')
        if not isinstance(text, str) or not text.strip():
            return None
        try:
            difficulty = Difficulty(str(item.get('difficulty', '')).strip().lower())
        except ValueError:
            return None
        category = item.get('category')
        return Question(
            id=f"ai_{session_id}_{number}",
            text=text.strip(),
            difficulty=difficulty,
            category=category.strip() if isinstance(category, str) and category.strip() else None,
        )
