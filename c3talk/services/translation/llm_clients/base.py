"""
Provider client contract

Both LLM backends accept the same request and return their raw JSON envelope;
shape differences are handled by the response normalizer.
"""

import base64
import json
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from c3talk.core.errors import (
    ProviderBillingError,
    ProviderError,
    ProviderOverloadedError,
    RateLimitedError,
)
from c3talk.core.logging import redact_secrets

_MAX_PROVIDER_MESSAGE_CHARS = 300


@dataclass(frozen=True)
class ProviderRequest:
    prompt: str
    max_output_tokens: int = 256
    audio: Optional[bytes] = None
    mime_type: Optional[str] = None
    transcription_required: bool = False

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)

    @property
    def audio_base64(self) -> str:
        return base64.b64encode(self.audio or b"").decode("ascii")

    @property
    def audio_format(self) -> str:
        return mime_to_format(self.mime_type or "")


class LLMClient(Protocol):
    name: str

    async def generate(self, request: ProviderRequest) -> dict:
        ...

    async def close(self) -> None:
        ...


def mime_to_format(mime: str) -> str:
    """Audio format tag understood by both providers; mp3 when unknown"""
    m = (mime or "").lower()
    if "wav" in m:
        return "wav"
    if "mp3" in m or "mpeg" in m:
        return "mp3"
    if "ogg" in m or "opus" in m:
        return "ogg"
    if "m4a" in m or "mp4" in m:
        return "mp4"
    if "aac" in m:
        return "aac"
    if "flac" in m:
        return "flac"
    if "amr" in m:
        return "amr"
    return "mp3"


def short_message(text: str) -> str:
    compact = " ".join(redact_secrets(text or "").split())
    if len(compact) <= _MAX_PROVIDER_MESSAGE_CHARS:
        return compact
    return f"{compact[: _MAX_PROVIDER_MESSAGE_CHARS - 3]}..."


def extract_provider_message(body: str) -> tuple[str, Optional[str]]:
    """Pull (message, provider code) out of a JSON error body"""
    if not body:
        return "", None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return short_message(body), None

    message: Optional[str] = None
    provider_code: Optional[str] = None
    error_payload: Any = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error_payload, dict):
        code = error_payload.get("code") or error_payload.get("status")
        if code is not None and str(code).strip():
            provider_code = str(code).strip()
        if isinstance(error_payload.get("message"), str):
            message = error_payload["message"]
    return short_message(message or body), provider_code


def error_for_status(
    provider: str,
    status_code: int,
    message: str,
    provider_code: Optional[str] = None,
) -> ProviderError:
    """Typed ProviderError for an HTTP failure"""
    detail = f"{provider} error: {status_code} {message}".strip()
    lowered = message.lower()
    kwargs = {"provider": provider, "status_code": status_code, "provider_code": provider_code}

    if status_code == 402 or "requires at least $0.50" in lowered:
        return ProviderBillingError(detail, **kwargs)
    if status_code == 429:
        return RateLimitedError(detail, **kwargs)
    if status_code == 503 or "overloaded" in lowered:
        return ProviderOverloadedError(detail, **kwargs)
    return ProviderError(detail, failure_kind="http_error", **kwargs)
