"""Decoding and validation of model output."""

import json
import logging
from typing import Any, Dict, Iterator, List

from correction_pipeline.domain.schemas import Correction, CorrectionResult, CorrectionType
from correction_pipeline.exceptions import ModelResponseError

logger = logging.getLogger(__name__)

_CORRECTION_TYPES = {t.value for t in CorrectionType}


def extract_output_text(response_body: Dict[str, Any], allow_empty: bool = False) -> str:
    """Returns the text of the first content block of a Bedrock Nova response.

    Args:
        response_body: Decoded response body.
        allow_empty: Accept a text block that is present but blank.

    Raises:
        ModelResponseError: If the response has no text block, or the text is blank and allow_empty is False.
    """
    try:
        content = response_body["output"]["message"]["content"]
        text = content[0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ModelResponseError("Model response has no text content") from e
    if not isinstance(text, str):
        raise ModelResponseError("Model response text is not a string")
    if not text.strip() and not allow_empty:
        raise ModelResponseError("Model response text is empty")
    return text


def _balanced_spans(text: str) -> Iterator[str]:
    """Yields each ``{...}`` span whose braces balance, skipping braces inside JSON strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    yield text[start : index + 1]
                    break
        start = text.find("{", start + 1)


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parses a JSON object from model output, tolerating prose around it.

    The whole text is tried first; otherwise the first balanced ``{...}`` span that parses as a
    JSON object is used.

    Raises:
        ModelResponseError: If no JSON object can be found.
    """
    stripped = text.strip()
    try:
        parsed = json.loads(stripped)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    for span in _balanced_spans(stripped):
        try:
            parsed = json.loads(span)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            logger.debug("Extracted JSON object from surrounding prose")
            return parsed

    raise ModelResponseError("No JSON object found in model response")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize_corrections(raw: Any) -> List[Correction]:
    """Coerces loosely typed correction entries into Correction models.

    Non-object entries are dropped, an unknown type becomes ``grammar`` and missing text fields
    become empty strings.
    """
    if not isinstance(raw, list):
        return []
    corrections = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        correction_type = entry.get("type")
        corrections.append(
            Correction(
                type=correction_type if correction_type in _CORRECTION_TYPES else CorrectionType.GRAMMAR,
                before=_as_text(entry.get("before")),
                after=_as_text(entry.get("after")),
                explanation=_as_text(entry.get("explanation")),
            )
        )
    return corrections


def parse_correction_output(text: str) -> CorrectionResult:
    """Validates a correction answer.

    Raises:
        ModelResponseError: If the answer is not a JSON object or correctedText is not a string.
    """
    payload = extract_json_object(text)
    corrected_text = payload.get("correctedText")
    if not isinstance(corrected_text, str):
        raise ModelResponseError(f"Invalid correctedText in model response: {type(corrected_text).__name__}")
    return CorrectionResult(
        corrected_text=corrected_text, corrections=normalize_corrections(payload.get("corrections"))
    )
