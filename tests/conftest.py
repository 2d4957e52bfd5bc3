import json
import random
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interview_engine.config import RetrySettings, Settings
from interview_engine.errors import ServiceError
from interview_engine.gateway import ResilientCompletionGateway
from interview_engine.schemas import Answer, Difficulty, Question


class FakeCompletionClient:
    """Completion client that replays a script of responses and exceptions."""

    def __init__(self, script=None, label="primary", default=None):
        self.label = label
        self.script = list(script or [])
        self.default = default
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.script:
            item = self.script.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise ServiceError(None, "script exhausted")
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def calls(self):
        return len(self.prompts)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def retry_settings():
    return RetrySettings()


@pytest.fixture
def make_gateway(recording_sleep, retry_settings):
    """Build a gateway over fake clients with no real delays and zero jitter."""
    def _make(*clients):
        return ResilientCompletionGateway(clients, retry_settings, sleep=recording_sleep, rng=lambda: 0.0)
    return _make


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def sample_questions():
    return [
        Question(id="q1", text="What is a closure in JavaScript?", difficulty=Difficulty.EASY, category="JavaScript"),
        Question(id="q2", text="What does the virtual DOM do?", difficulty=Difficulty.EASY, category="Frontend"),
        Question(id="q3", text="How would you index a slow SQL query?", difficulty=Difficulty.MEDIUM, category="Database"),
        Question(id="q4", text="How do you secure a REST API?", difficulty=Difficulty.MEDIUM, category="Security"),
        Question(id="q5", text="Design a URL shortener.", difficulty=Difficulty.HARD, category="System Design"),
        Question(id="q6", text="Design a distributed job queue.", difficulty=Difficulty.HARD, category="Backend"),
    ]


@pytest.fixture
def sample_answers(sample_questions):
    texts = [
        "A closure captures variables from the enclosing scope so the function can use them later.",
        "It batches updates and diffs a lightweight tree before touching the real DOM.",
        "I would check the query plan, add an index on the filtered columns and avoid select star.",
        "Use authentication with tokens, validate input, rate limit and serve everything over https.",
        "Hash the long url, store it in a database keyed by the short code, cache hot entries.",
        "Workers pull jobs from a durable queue with retries, acknowledgements and monitoring.",
    ]
    return [
        Answer(question_id=question.id, text=text, time_spent_seconds=10)
        for question, text in zip(sample_questions, texts)
    ]


@pytest.fixture
def rng():
    return random.Random(1234)


def batch_response(count, score=8, **overrides):
    """JSON text for a batch evaluation reply with ``count`` entries."""
    entry = {
        "score": score,
        "feedback": "Clear and accurate explanation of the core idea.",
        "strengths": ["Accurate", "Concise"],
        "improvements": ["Add an example"],
    }
    entry.update(overrides)
    return json.dumps({"evaluations": [dict(entry) for _ in range(count)], "overallScore": score})
