import pytest

from conftest import FakeCompletionClient
from interview_engine import fallback
from interview_engine.errors import ServiceError
from interview_engine.schemas import Answer
from interview_engine.summary import SummaryGenerator, has_ai_feedback


@pytest.fixture
def evaluated_answers():
    return [
        Answer(question_id="q1", text="a", time_spent_seconds=12, score=8,
               feedback="Precise explanation of closures with a good example."),
        Answer(question_id="q2", text="b", time_spent_seconds=40, score=6,
               feedback="Covers indexing but misses query plans."),
    ]


def test_ai_summary_is_returned(make_gateway, evaluated_answers):
    client = FakeCompletionClient(["  The candidate performed well.  "])
    summary = SummaryGenerator(make_gateway(client)).generate(evaluated_answers, 7.0)

    assert summary == "The candidate performed well."
    prompt = client.prompts[0]
    assert "Final Score: 7.0/10" in prompt
    assert "Individual Scores: 8, 6" in prompt
    assert "Q1: Precise explanation" in prompt


def test_zero_score_skips_ai_call(make_gateway, evaluated_answers):
    client = FakeCompletionClient(["unused"])
    summary = SummaryGenerator(make_gateway(client)).generate(evaluated_answers, 0)

    assert client.calls == 0
    assert "**INTERVIEW PERFORMANCE SUMMARY**" in summary


def test_fallback_feedback_skips_ai_call(make_gateway):
    answers = [
        fallback.evaluate_answer(Answer(question_id="q1", text="some answer text here", time_spent_seconds=5), 20,
                                 service_unavailable=True),
    ]
    client = FakeCompletionClient(["unused"])
    summary = SummaryGenerator(make_gateway(client)).generate(answers, answers[0].score)

    assert client.calls == 0
    assert summary.endswith(fallback.SERVICE_NOTE)


def test_placeholder_feedback_is_not_substantive():
    answers = [
        Answer(question_id="q1", text="a"),
        Answer(question_id="q2", text="b", score=5, feedback="Answer evaluated."),
        Answer(question_id="q3", text="c", score=5, feedback="   "),
    ]
    assert not has_ai_feedback(answers)
    answers.append(Answer(question_id="q4", text="d", score=7, feedback="Thoughtful trade-off discussion."))
    assert has_ai_feedback(answers)


def test_rate_limited_failure_adds_service_note(make_gateway, evaluated_answers):
    client = FakeCompletionClient(default=ServiceError(429, "Too Many Requests"))
    summary = SummaryGenerator(make_gateway(client)).generate(evaluated_answers, 7.0)

    assert client.calls == 1
    assert "Final Score: 7.0/10" in summary
    assert summary.endswith(fallback.SERVICE_NOTE)


def test_other_failure_has_no_service_note(make_gateway, evaluated_answers):
    client = FakeCompletionClient(default=ServiceError(400, "bad request"))
    summary = SummaryGenerator(make_gateway(client)).generate(evaluated_answers, 7.0)

    assert "**INTERVIEW PERFORMANCE SUMMARY**" in summary
    assert fallback.SERVICE_NOTE not in summary


def test_empty_model_output_uses_template(make_gateway, evaluated_answers):
    client = FakeCompletionClient(["   "])
    summary = SummaryGenerator(make_gateway(client)).generate(evaluated_answers, 7.0)
    assert "**INTERVIEW PERFORMANCE SUMMARY**" in summary


def test_no_answers_is_safe(make_gateway):
    client = FakeCompletionClient(["unused"])
    summary = SummaryGenerator(make_gateway(client)).generate([], 5.0)
    assert client.calls == 0
    assert "Questions Completed: 0" in summary


if __name__ == "__main__":
    pytest.main([__file__])
