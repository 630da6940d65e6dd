"""
Gemini Client wrapper

Primary provider. Calls the Gemini REST `generateContent` endpoint with a
JSON response schema and optional inline audio.
"""

from typing import Optional

import httpx

from c3talk.core.config import settings
from c3talk.core.errors import ProviderError
from c3talk.core.logging import get_logger
from c3talk.services.translation.credentials import PRIMARY, CredentialResolver
from c3talk.services.translation.llm_clients.base import (
    ProviderRequest,
    error_for_status,
    extract_provider_message,
    short_message,
)

logger = get_logger(__name__)


class GeminiClient:
    name = PRIMARY

    def __init__(
        self,
        credentials: CredentialResolver,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.credentials = credentials
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_api_url).rstrip("/")
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout or settings.provider_timeout_seconds
        )

    def build_body(self, request: ProviderRequest) -> dict:
        parts = []
        if request.has_audio:
            parts.append({
                "inlineData": {
                    "mimeType": request.mime_type or "audio/mpeg",
                    "data": request.audio_base64,
                }
            })
        parts.append({"text": request.prompt})

        properties = {"translation": {"type": "STRING"}}
        required = ["translation"]
        if request.transcription_required:
            properties = {"transcription": {"type": "STRING"}, **properties}
            required = ["transcription", "translation"]

        return {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "temperature": 0,
                "maxOutputTokens": request.max_output_tokens,
                "responseMimeType": "application/json",
                "responseSchema": {
                    "type": "OBJECT",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    async def generate(self, request: ProviderRequest) -> dict:
        api_key = self.credentials.require(self.name)
        url = f"{self.base_url}/models/{self.model}:generateContent"

        try:
            response = await self.client.post(
                url,
                headers={"x-goog-api-key": api_key, "Content-Type": "application/json"},
                json=self.build_body(request),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message, provider_code = extract_provider_message(e.response.text)
            raise error_for_status(self.name, e.response.status_code, message, provider_code) from e
        except httpx.TimeoutException as e:
            raise ProviderError(
                "Gemini request timed out", provider=self.name, failure_kind="timeout"
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"Gemini transport error: {short_message(str(e))}",
                provider=self.name,
                failure_kind="transport",
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError("Gemini returned invalid JSON payload", provider=self.name) from e

    async def close(self) -> None:
        await self.client.aclose()
