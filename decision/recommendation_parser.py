# decision/recommendation_parser.py

"""
Turn free text from the language model into a validated Recommendation.

The model is asked for a bare JSON object but routinely wraps it in prose,
leaves trailing commas, breaks lines inside strings or stops mid-sentence.
Only the structural repairs below are attempted; the text is never evaluated.
"""

import json
import math
import re

from decision.errors import InvalidShapeError, UnparseableError
from decision.models import Recommendation

_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_LINE_BREAK = re.compile(r"[ \t]*[\r\n]+[ \t]*")
_REASONING_OPEN = re.compile(r'"reasoning"\s*:\s*"')
# A quote preceded by an even run of backslashes (including none) is unescaped
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)(?:\\\\)*"')


def truncate_for_log(text, limit=200):
    if text is None:
        return ""
    text = str(text)
    if len(text) <= limit:
        return text
    return text[:limit] + f"... [{len(text) - limit} more chars]"


def _load_object(text):
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def _outer_object(text):
    """Greedy slice from the first '{' to the last '}'; None when there is no such pair."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _repair_base(text):
    # Like _outer_object but keeps an unterminated tail so it can be closed later
    start = text.find("{")
    if start == -1:
        return text
    end = text.rfind("}")
    return text[start:end + 1] if end > start else text[start:]


def remove_trailing_commas(text):
    return _TRAILING_COMMA.sub(r"\1", text)


def collapse_line_breaks(text):
    return _LINE_BREAK.sub(" ", text)


def close_open_reasoning(text):
    """Force-close a "reasoning" string the model never finished."""
    match = _REASONING_OPEN.search(text)
    if not match:
        return text
    if _UNESCAPED_QUOTE.search(text, match.end()):
        return text
    return text.rstrip() + '"}'


def ensure_terminated(text):
    text = text.rstrip()
    return text if text.endswith("}") else text + "}"


def _candidates(trimmed):
    yield trimmed

    outer = _outer_object(trimmed)
    if outer is not None and outer != trimmed:
        yield outer

    repaired = collapse_line_breaks(remove_trailing_commas(_repair_base(trimmed)))
    yield repaired

    yield ensure_terminated(close_open_reasoning(repaired))


def extract_json_object(raw_text):
    """Run the recovery pipeline and return the first dict that parses."""
    trimmed = (raw_text or "").strip()
    if not trimmed:
        raise UnparseableError("Empty response from recommender", raw_text)

    for candidate in _candidates(trimmed):
        data = _load_object(candidate)
        if data is not None:
            return data

    raise UnparseableError("Response does not contain a recoverable JSON object", raw_text)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_recommendation(data, raw_text=None):
    if "recommended_instances" not in data or data["recommended_instances"] is None:
        raise InvalidShapeError("missing required field 'recommended_instances'", raw_text)

    instances = data["recommended_instances"]
    if not _is_number(instances):
        raise InvalidShapeError(
            f"'recommended_instances' must be a number, got {type(instances).__name__}", raw_text
        )
    if isinstance(instances, float):
        if not math.isfinite(instances) or not instances.is_integer():
            raise InvalidShapeError(f"'recommended_instances' must be an integer, got {instances}", raw_text)
        instances = int(instances)
    if instances <= 0:
        raise InvalidShapeError(f"'recommended_instances' must be positive, got {instances}", raw_text)

    confidence = data.get("confidence")
    if confidence is not None:
        if not _is_number(confidence) or not math.isfinite(confidence):
            raise InvalidShapeError(f"'confidence' must be a finite number, got {confidence!r}", raw_text)
        if not 0.0 <= confidence <= 1.0:
            raise InvalidShapeError(f"'confidence' must be within [0, 1], got {confidence}", raw_text)
        confidence = float(confidence)

    reasoning = data.get("reasoning")
    if reasoning is not None and not isinstance(reasoning, str):
        raise InvalidShapeError(f"'reasoning' must be a string, got {type(reasoning).__name__}", raw_text)

    return Recommendation(
        recommended_instances=instances,
        confidence=confidence,
        reasoning=reasoning,
    )


def parse_recommendation(raw_text) -> Recommendation:
    """
    Parse recommender output.

    Raises:
        UnparseableError: no JSON object could be recovered.
        InvalidShapeError: an object was recovered but its fields are invalid.
    """
    data = extract_json_object(raw_text)
    return validate_recommendation(data, raw_text)
