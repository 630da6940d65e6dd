"""
Response Normalizer

Turns a raw provider envelope into a validated TranslationResult.

Each known envelope shape is a variant with a match function that returns the
located payload or None; variants are tried in a fixed priority order and the
first match wins. A located string payload is searched for JSON (fenced code
block, then the outermost {...}, then the outermost [...]) and parsed.

Missing fields are errors, never defaulted. Recovery is the orchestrator's job.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Union

from c3talk.core.errors import (
    NoStructuredPayloadError,
    ResponseParseError,
    ResponseValidationError,
)
from c3talk.schemas.translation import ResponseSchema, TranslationResult

Payload = Union[dict, list, str]

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


@dataclass(frozen=True)
class LocatedPayload:
    variant: str
    content: Payload


@dataclass(frozen=True)
class EnvelopeVariant:
    name: str
    match: Callable[[dict], Optional[Payload]]


# ---------------------------------------------------------------------------
# Variant match functions
# ---------------------------------------------------------------------------


def _text_of_parts(parts: Any) -> Optional[str]:
    """Join the text of typed content parts ({"type": "text", "text": ...})"""
    if not isinstance(parts, list):
        return None
    texts = []
    for part in parts:
        if not isinstance(part, dict) or part.get("thought") is True:
            continue
        text = part.get("text")
        if isinstance(text, str):
            texts.append(text)
    joined = "".join(texts)
    return joined if joined.strip() else None


def _content_value(value: Any) -> Optional[Payload]:
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, list):
        return _text_of_parts(value)
    return None


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _match_output_text(raw: dict) -> Optional[Payload]:
    found = _content_value(raw.get("output_text"))
    if found is not None:
        return found
    nested = raw.get("response")
    if isinstance(nested, dict):
        return _content_value(nested.get("output_text"))
    return None


def _match_output_list(raw: dict) -> Optional[Payload]:
    output = raw.get("output")
    if not isinstance(output, list):
        return None
    for item in output:
        if isinstance(item, dict):
            found = _content_value(item.get("content"))
            if found is not None:
                return found
    return None


def _match_chat_choices(raw: dict) -> Optional[Payload]:
    choice = _first(raw.get("choices"))
    if not isinstance(choice, dict):
        return None
    message = choice.get("message")
    if not isinstance(message, dict):
        return None
    return _content_value(message.get("content"))


def _match_data_list(raw: dict) -> Optional[Payload]:
    item = _first(raw.get("data"))
    if not isinstance(item, dict):
        return None
    return _content_value(item.get("content"))


def _match_candidates(raw: dict) -> Optional[Payload]:
    candidate = _first(raw.get("candidates"))
    if not isinstance(candidate, dict):
        return None
    content = candidate.get("content")
    if isinstance(content, dict):
        return _text_of_parts(content.get("parts"))
    return _content_value(content)


def _match_text(raw: dict) -> Optional[Payload]:
    text = raw.get("text")
    if isinstance(text, str) and text.strip():
        return text
    return None


ENVELOPE_VARIANTS: Tuple[EnvelopeVariant, ...] = (
    EnvelopeVariant("output_text", _match_output_text),
    EnvelopeVariant("output", _match_output_list),
    EnvelopeVariant("choices", _match_chat_choices),
    EnvelopeVariant("data", _match_data_list),
    EnvelopeVariant("candidates", _match_candidates),
    EnvelopeVariant("text", _match_text),
)


def locate_payload(raw: Any) -> Optional[LocatedPayload]:
    """First matching variant in priority order, or None"""
    if isinstance(raw, str):
        return LocatedPayload("raw_text", raw) if raw.strip() else None
    if not isinstance(raw, dict):
        return None
    for variant in ENVELOPE_VARIANTS:
        found = variant.match(raw)
        if found is not None:
            return LocatedPayload(variant.name, found)
    return None


# ---------------------------------------------------------------------------
# String extraction
# ---------------------------------------------------------------------------


def extract_json_span(text: str) -> Optional[str]:
    """Fenced block, else outermost {...}, else outermost [...]"""
    fenced = _FENCE_RE.search(text)
    if fenced and fenced.group(1).strip():
        return fenced.group(1).strip()

    for open_char, close_char in (("{", "}"), ("[", "]")):
        start = text.find(open_char)
        end = text.rfind(close_char)
        if start != -1 and end > start:
            return text[start:end + 1]
    return None


def parse_json_text(text: str, _depth: int = 0) -> Any:
    stripped = text.strip()

    # Whole text may already be JSON (possibly a JSON-encoded string). Only
    # text that fails this parse goes to the span search, so fences quoted
    # inside a valid object are left alone.
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        parsed = None
    else:
        if isinstance(parsed, str) and _depth == 0:
            return parse_json_text(parsed, _depth + 1)
        if isinstance(parsed, (dict, list)):
            return parsed

    span = extract_json_span(stripped)
    if span is None:
        raise ResponseParseError("Failed to parse response from AI: no JSON found", raw_text=text)
    try:
        return json.loads(span)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Failed to parse response from AI: {e.msg}", raw_text=text) from e


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class ResponseNormalizer:
    def normalize(self, raw: Any, schema: Optional[ResponseSchema] = None) -> TranslationResult:
        schema = schema or ResponseSchema()

        located = locate_payload(raw)
        if located is None:
            raise NoStructuredPayloadError()

        content = located.content
        if isinstance(content, str):
            content = parse_json_text(content)

        return self.validate(content, schema)

    @staticmethod
    def validate(content: Any, schema: ResponseSchema) -> TranslationResult:
        if isinstance(content, list) and len(content) == 1:
            content = content[0]
        if not isinstance(content, dict):
            raise ResponseValidationError("Invalid JSON response: not an object")

        translation = content.get("translation")
        if not isinstance(translation, str):
            raise ResponseValidationError("Invalid JSON response: missing or invalid 'translation'")

        transcription = None
        if schema.transcription_required:
            transcription = content.get("transcription")
            if not isinstance(transcription, str):
                raise ResponseValidationError(
                    "Invalid JSON response: missing or invalid 'transcription'"
                )

        return TranslationResult(transcription=transcription, translation=translation)


_default = ResponseNormalizer()


def normalize(raw: Any, schema: Optional[ResponseSchema] = None) -> TranslationResult:
    return _default.normalize(raw, schema)
