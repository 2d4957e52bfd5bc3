"""
Recovery of JSON payloads from free-form model output.

Models asked for JSON still wrap it in markdown fences, surround it with prose
or emit JavaScript-flavoured syntax. ``extract_structured`` tolerates those
habits but never invents data: if no well-formed object/array can be found it
raises ``ExtractionError``.
"""
import json
import logging
import re
from typing import Any, Iterator, List, Union

from .errors import ExtractionError, InvalidArgument

logger = logging.getLogger('response_extractor')

SHAPES = {
    'object': ('{', '}', dict),
    'array': ('[', ']', list),
}

FENCED_BLOCK = re.compile(r'```[ \t]*[A-Za-z]*[ \t]*\r?\n?(.*?)```', re.DOTALL)
FENCE_MARKER = re.compile(r'```[ \t]*[A-Za-z]*')
# Double- and single-quoted literals, whichever opens first
QUOTED_LITERAL = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"", re.DOTALL)
SINGLE_QUOTED_ESCAPE = re.compile(r'\\.|"')
TRAILING_COMMA = re.compile(r',(\s*[}\]])')
BARE_KEY = re.compile(r'([{,]\s*)([A-Za-z_][A-Za-z0-9_\-]*)(\s*):')
LITERALS = {
    'undefined': 'null',
    'None': 'null',
    'True': 'true',
    'False': 'false',
}
LITERAL_PATTERN = re.compile(r'\b(' + '|'.join(LITERALS) + r')\b')


def _loads(text: str) -> Any:
    try:
        return json.loads(text, strict=False)
    except ValueError:
        return None


def _unescape_single(match) -> str:
    token = match.group(0)
    if token == "\\'":
        return "'"
    if token == '"':
        return '\\"'
    return token


def _to_json_literal(literal: str) -> str:
    if literal.startswith("'"):
        return '"' + SINGLE_QUOTED_ESCAPE.sub(_unescape_single, literal[1:-1]) + '"'
    return literal


def _fix_syntax(segment: str) -> str:
    segment = LITERAL_PATTERN.sub(lambda m: LITERALS[m.group(1)], segment)
    segment = TRAILING_COMMA.sub(r'\1', segment)
    return BARE_KEY.sub(r'\1"\2"\3:', segment)


def repair_json(text: str) -> str:
    """Light syntax repair: single quotes, trailing commas, bare keys, non-JSON literals.

    Quoted literals are tokenized left to right so a double quote inside a
    single-quoted value (or an apostrophe inside a double-quoted one) stays
    part of that value. Syntax fixes only touch text between literals.
    """
    pieces: List[str] = []
    last = 0
    for match in QUOTED_LITERAL.finditer(text):
        pieces.append(_fix_syntax(text[last:match.start()]))
        pieces.append(_to_json_literal(match.group(0)))
        last = match.end()
    pieces.append(_fix_syntax(text[last:]))
    return ''.join(pieces)


def _matching_close(text: str, start: int, opener: str, closer: str) -> int:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _balanced_spans(text: str, opener: str, closer: str) -> Iterator[str]:
    """Top-level balanced spans in order; an unterminated opener is skipped."""
    start = text.find(opener)
    while start != -1:
        end = _matching_close(text, start, opener, closer)
        if end == -1:
            start = text.find(opener, start + 1)
            continue
        yield text[start:end + 1]
        start = text.find(opener, end + 1)


def _candidates(raw_text: str) -> Iterator[str]:
    for match in FENCED_BLOCK.finditer(raw_text):
        yield match.group(1)
    # Unfenced text, or an opening fence whose closing fence was truncated
    yield FENCE_MARKER.sub('', raw_text)


def _parse_candidate(text: str, opener: str, closer: str, expected: type) -> Any:
    text = text.strip()
    value = _loads(text)
    if isinstance(value, expected):
        return value
    for span in _balanced_spans(text, opener, closer):
        value = _loads(span)
        if value is None:
            value = _loads(repair_json(span))
        if isinstance(value, expected):
            return value
    return None


def extract_structured(raw_text: str, shape: str = 'object') -> Union[dict, list]:
    """
    Extract a JSON object or array from model output.

    Args:
        raw_text: Text returned by the completion service
        shape: ``"object"`` or ``"array"``

    Raises:
        ExtractionError: no well-formed value of the requested shape was found
    """
    if shape not in SHAPES:
        raise InvalidArgument(f"Unknown shape '{shape}', expected 'object' or 'array'")
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise ExtractionError("Model returned an empty response")

    opener, closer, expected = SHAPES[shape]
    for candidate in _candidates(raw_text):
        value = _parse_candidate(candidate, opener, closer, expected)
        if value is not None:
            return value

    logger.warning(f"No valid JSON {shape} found in response: {raw_text[:200]!r}")
    raise ExtractionError(f"No well-formed JSON {shape} found in model output")
