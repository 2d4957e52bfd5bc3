import json

import pytest

from conftest import FakeCompletionClient, batch_response
from interview_engine import fallback
from interview_engine.errors import InvalidArgument, ServiceError
from interview_engine.evaluator import AnswerEvaluator
from interview_engine.schemas import Answer


def individual_response(score=7, **overrides):
    entry = {"score": score, "feedback": "Solid answer.", "strengths": ["Clear"], "improvements": ["Go deeper"]}
    entry.update(overrides)
    return json.dumps(entry)


def test_batch_evaluation(make_gateway, sample_questions, sample_answers):
    """Test a well-formed batch reply scores every answer in one request"""
    client = FakeCompletionClient([batch_response(6, score=8)])
    result = AnswerEvaluator(make_gateway(client)).evaluate_answers(sample_questions, sample_answers)

    assert client.calls == 1
    assert len(result.per_answer) == 6
    assert all(answer.score == 8 for answer in result.per_answer)
    assert result.overall_score == 8.0
    assert [a.question_id for a in result.per_answer] == [a.question_id for a in sample_answers]


def test_scores_are_clamped_and_overall_is_recomputed(make_gateway, sample_questions, sample_answers):
    evaluations = [{"score": s, "feedback": "ok"} for s in (15, -3, 7.5, "6", 9, 4)]
    raw = json.dumps({"evaluations": evaluations, "overallScore": 99})
    client = FakeCompletionClient([raw])
    result = AnswerEvaluator(make_gateway(client)).evaluate_answers(sample_questions, sample_answers)

    scores = [answer.score for answer in result.per_answer]
    assert scores == [10, 1, 7.5, 6, 9, 4]
    assert result.overall_score == round(sum(scores) / 6, 2)
    assert all(1 <= s <= 10 for s in scores)


def test_batch_defaults_and_truncation(make_gateway, sample_questions, sample_answers):
    raw = batch_response(6, feedback="", strengths="none", improvements=["a", "b", "c", "d", "e"])
    client = FakeCompletionClient([raw])
    result = AnswerEvaluator(make_gateway(client)).evaluate_answers(sample_questions, sample_answers)

    first = result.per_answer[0]
    assert first.feedback == "Answer evaluated."
    assert first.strengths == ["Good effort"]
    assert first.improvements == ["a", "b", "c"]


def test_short_batch_falls_back_to_individual(make_gateway, sample_questions, sample_answers):
    """Test five evaluations for six answers is rejected instead of misaligned"""
    script = [batch_response(5, score=9)] + [individual_response(score=n) for n in range(1, 7)]
    client = FakeCompletionClient(script)
    result = AnswerEvaluator(make_gateway(client)).evaluate_answers(sample_questions, sample_answers)

    assert client.calls == 7
    assert [answer.score for answer in result.per_answer] == [1, 2, 3, 4, 5, 6]
    assert result.overall_score == 3.5
    assert sample_answers[2].text in client.prompts[3]


def test_non_numeric_batch_score_rejects_batch(make_gateway, sample_questions, sample_answers):
    evaluations = [{"score": 8}] * 5 + [{"score": "great"}]
    script = [json.dumps({"evaluations": evaluations})] + [individual_response()] * 6
    client = FakeCompletionClient(script)
    result = AnswerEvaluator(make_gateway(client)).evaluate_answers(sample_questions, sample_answers)

    assert client.calls == 7
    assert all(answer.score == 7 for answer in result.per_answer)


def test_individual_failure_only_affects_that_answer(make_gateway, sample_questions, sample_answers):
    script = [
        "not json at all",
        individual_response(score=8),
        "still not json",
        individual_response(score=8),
        individual_response(score=8),
        individual_response(score=8),
        individual_response(score=8),
    ]
    client = FakeCompletionClient(script)
    result = AnswerEvaluator(make_gateway(client)).evaluate_answers(sample_questions, sample_answers)

    second = result.per_answer[1]
    assert fallback.is_fallback_feedback(second.feedback)
    assert "backup analysis" in second.feedback
    assert second.score == fallback.heuristic_score(sample_answers[1].text, 10, 20)
    others = [a for i, a in enumerate(result.per_answer) if i != 1]
    assert all(a.score == 8 for a in others)


def test_all_503_returns_heuristic_scores_with_unavailable_note(make_gateway, sample_questions, sample_answers):
    primary = FakeCompletionClient(default=ServiceError(503, "Service Unavailable"), label="primary")
    backup = FakeCompletionClient(default=ServiceError(503, "Service Unavailable"), label="backup")
    result = AnswerEvaluator(make_gateway(primary, backup)).evaluate_answers(sample_questions, sample_answers)

    # batch attempts only: the individual pass is skipped
    assert primary.calls == 2
    assert backup.calls == 2
    assert len(result.per_answer) == 6
    for question, answer in zip(sample_questions, result.per_answer):
        assert "AI service temporarily unavailable" in answer.feedback
        assert answer.score == fallback.heuristic_score(answer.text, answer.time_spent_seconds,
                                                        question.time_limit_seconds)
    assert result.overall_score == round(sum(a.score for a in result.per_answer) / 6, 2)


def test_answers_out_of_order_are_matched_by_id(make_gateway, sample_questions, sample_answers):
    client = FakeCompletionClient([batch_response(6)])
    reordered = list(reversed(sample_answers))
    AnswerEvaluator(make_gateway(client)).evaluate_answers(sample_questions, reordered)

    prompt = client.prompts[0]
    first_block = prompt.split("QUESTION 2:")[0]
    assert sample_questions[5].text in first_block
    assert "TIME: 10s/120s" in first_block


@pytest.mark.parametrize("questions_slice, answers_slice", [
    (slice(0, 0), slice(0, 0)),
    (slice(0, 6), slice(0, 5)),
])
def test_invalid_input_raises(make_gateway, sample_questions, sample_answers, questions_slice, answers_slice):
    evaluator = AnswerEvaluator(make_gateway(FakeCompletionClient()))
    with pytest.raises(InvalidArgument):
        evaluator.evaluate_answers(sample_questions[questions_slice], sample_answers[answers_slice])


def test_unknown_question_id_raises(make_gateway, sample_questions, sample_answers):
    answers = sample_answers[:5] + [Answer(question_id="nope", text="x")]
    evaluator = AnswerEvaluator(make_gateway(FakeCompletionClient()))
    with pytest.raises(InvalidArgument):
        evaluator.evaluate_answers(sample_questions, answers)


def test_duplicate_question_id_raises(make_gateway, sample_questions, sample_answers):
    answers = sample_answers[:5] + [Answer(question_id="q1", text="again")]
    evaluator = AnswerEvaluator(make_gateway(FakeCompletionClient()))
    with pytest.raises(InvalidArgument, match="answered twice"):
        evaluator.evaluate_answers(sample_questions, answers)


def test_quick_evaluate_success(make_gateway, sample_questions, sample_answers):
    raw = individual_response(score=12, strengths=["a", "b"], improvements=[])
    client = FakeCompletionClient([raw])
    result = AnswerEvaluator(make_gateway(client)).quick_evaluate(sample_questions[0], sample_answers[0])

    assert result.score == 10
    assert result.strengths == ["a"]
    assert result.improvements == ["Keep practicing"]


def test_quick_evaluate_uses_single_attempt_and_falls_back(make_gateway, recording_sleep,
                                                           sample_questions, sample_answers):
    client = FakeCompletionClient(default=ServiceError(500, "Internal error"))
    result = AnswerEvaluator(make_gateway(client)).quick_evaluate(sample_questions[0], sample_answers[0])

    assert client.calls == 1
    assert recording_sleep.delays == []
    assert result.score == fallback.heuristic_score(sample_answers[0].text, 10, 20)
    assert len(result.strengths) == 1
    assert len(result.improvements) == 1


if __name__ == "__main__":
    pytest.main([__file__])
