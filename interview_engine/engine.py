import logging
import random
from typing import List, Optional, Sequence

from .config import Settings, load_settings
from .evaluator import AnswerEvaluator
from .gateway import ResilientCompletionGateway
from .llm import CompletionClient, build_clients
from .logging_config import setup_logging
from .questions import QuestionGenerator
from .resume_parser import ResumeParser
from .schemas import Answer, EvaluationResult, Question, QuickEvaluation, ResumeProfile
from .summary import SummaryGenerator

logger = logging.getLogger('interview_engine')


class InterviewEngine:
    """
    Wires settings, completion clients and the gateway into the four generators.

    ``clients`` overrides the clients built from ``settings.credentials``; tests
    pass scripted clients here. ``sleep`` and ``rng`` are handed to the gateway.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clients: Optional[Sequence[CompletionClient]] = None,
        sleep=None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or Settings()
        self.clients = tuple(clients) if clients is not None else build_clients(self.settings)
        self.rng = rng or random.Random()

        gateway_options = {'rng': self.rng.random}
        if sleep is not None:
            gateway_options['sleep'] = sleep
        self.gateway = ResilientCompletionGateway(self.clients, self.settings.retry, **gateway_options)

        retry = self.settings.retry
        self.questions = QuestionGenerator(self.gateway, max_retries=retry.questions, rng=self.rng)
        self.evaluator = AnswerEvaluator(self.gateway, retry)
        self.summaries = SummaryGenerator(self.gateway, max_retries=retry.summary)
        self.resumes = ResumeParser(self.gateway, self.settings.resume, retry)
        logger.info(f"Interview engine ready with {len(self.clients)} credential(s)")

    @classmethod
    def from_settings(cls, path: Optional[str] = None, configure_logging: bool = True) -> "InterviewEngine":
        settings = load_settings(path)
        if configure_logging:
            setup_logging(settings.logging.level, settings.logging.directory)
        return cls(settings)

    def generate_questions(
        self,
        candidate_name: str,
        resume_text: Optional[str] = None,
        resume_profile: Optional[ResumeProfile] = None,
    ) -> List[Question]:
        return self.questions.generate(candidate_name, resume_text, resume_profile)

    def evaluate_answers(self, questions: Sequence[Question], answers: Sequence[Answer]) -> EvaluationResult:
        return self.evaluator.evaluate_answers(questions, answers)

    def quick_evaluate(self, question: Question, answer: Answer) -> QuickEvaluation:
        return self.evaluator.quick_evaluate(question, answer)

    def generate_summary(self, answers: Sequence[Answer], final_score: float) -> str:
        return self.summaries.generate(answers, final_score)

    def parse_resume_text(self, raw_text: str) -> ResumeProfile:
        return self.resumes.parse(raw_text)
