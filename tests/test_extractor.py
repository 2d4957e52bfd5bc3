import json

import pytest

from interview_engine.errors import ExtractionError, InvalidArgument
from interview_engine.extractor import extract_structured, repair_json


def test_fenced_json_with_prose_round_trips():
    """Test a fenced object surrounded by prose comes back unchanged"""
    original = {
        "name": "Jane",
        "scores": [7, 8.5, {"nested": True}],
        "note": "braces } and [ inside strings",
        "empty": None,
    }
    text = f"Here is the result you asked for:\n```json\n{json.dumps(original, indent=2)}\n```\nLet me know!"
    assert extract_structured(text, "object") == original


def test_plain_json_parses_directly():
    assert extract_structured('[1, 2, 3]', "array") == [1, 2, 3]


def test_unterminated_fence():
    text = '```json\n{"score": 7, "feedback": "fine"}'
    assert extract_structured(text) == {"score": 7, "feedback": "fine"}


def test_object_found_inside_prose():
    text = 'Sure! {"score": 6} is my evaluation. Anything else?'
    assert extract_structured(text) == {"score": 6}


def test_array_inside_wrapping_object():
    text = '{"questions": [{"text": "Q1"}, {"text": "Q2"}]}'
    assert extract_structured(text, "array") == [{"text": "Q1"}, {"text": "Q2"}]


def test_repairs_javascript_style_output():
    text = "{score: 8, 'feedback': 'Good answer', strengths: ['a', 'b',], passed: True, extra: undefined,}"
    assert extract_structured(text) == {
        "score": 8,
        "feedback": "Good answer",
        "strengths": ["a", "b"],
        "passed": True,
        "extra": None,
    }


def test_repair_leaves_string_contents_alone():
    text = '{"feedback": "use None, True, and {key: value},", "ok": True}'
    repaired = repair_json(text)
    assert json.loads(repaired) == {"feedback": "use None, True, and {key: value},", "ok": True}


def test_skips_malformed_span_and_uses_next_one():
    text = 'First try: {"score": oops} second try: {"score": 9}'
    assert extract_structured(text) == {"score": 9}


def test_stray_opener_in_prose_is_skipped():
    text = 'The candidate wrote { without closing it. Result: {"score": 7}'
    assert extract_structured(text) == {"score": 7}


def test_double_quotes_inside_single_quoted_value():
    text = "{'feedback': 'He said \"hi\" politely', 'score': 6}"
    assert extract_structured(text) == {"feedback": 'He said "hi" politely', "score": 6}


def test_apostrophe_inside_double_quoted_value():
    text = "{\"feedback\": \"It's solid\", 'tips': ['don\\'t rush',]}"
    assert extract_structured(text) == {"feedback": "It's solid", "tips": ["don't rush"]}


def test_truncated_output_raises():
    with pytest.raises(ExtractionError):
        extract_structured('{"evaluations": [{"score": 7}, {"score": 8}, {"sco')


def test_no_json_raises():
    with pytest.raises(ExtractionError):
        extract_structured("I cannot help with that.")


@pytest.mark.parametrize("value", ["", "   ", None, 42])
def test_blank_or_non_string_input_raises(value):
    with pytest.raises(ExtractionError):
        extract_structured(value)


def test_wrong_shape_raises():
    with pytest.raises(ExtractionError):
        extract_structured('{"a": 1}', "array")


def test_unknown_shape_is_invalid_argument():
    with pytest.raises(InvalidArgument):
        extract_structured('{}', "tuple")


if __name__ == "__main__":
    pytest.main([__file__])
