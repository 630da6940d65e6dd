"""
OpenRouter Client wrapper

Secondary provider. OpenRouter speaks the OpenAI chat-completions protocol,
so the official SDK is pointed at its base URL. The SDK's own retries are
disabled; retry and fallback policy live in the orchestrator.
"""

from typing import Any, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from c3talk.core.config import settings
from c3talk.core.errors import ProviderError
from c3talk.core.logging import get_logger
from c3talk.services.translation.credentials import SECONDARY, CredentialResolver
from c3talk.services.translation.llm_clients.base import (
    ProviderRequest,
    error_for_status,
    short_message,
)

logger = get_logger(__name__)


class OpenRouterClient:
    name = SECONDARY

    def __init__(
        self,
        credentials: CredentialResolver,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ):
        self.credentials = credentials
        self.model = model or settings.openrouter_model
        api_key = credentials.get(self.name)

        headers = {}
        if settings.openrouter_referer:
            headers["HTTP-Referer"] = settings.openrouter_referer
        if settings.openrouter_app_title:
            headers["X-Title"] = settings.openrouter_app_title

        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or settings.openrouter_base_url,
                timeout=timeout or settings.provider_timeout_seconds,
                max_retries=0,
                default_headers=headers or None,
            )
        else:
            self.client = None

    def build_messages(self, request: ProviderRequest) -> list:
        content: list = [{"type": "text", "text": request.prompt}]
        if request.has_audio:
            content.append({
                "type": "input_audio",
                "input_audio": {
                    "data": request.audio_base64,
                    "format": request.audio_format,
                },
            })
        return [{"role": "user", "content": content}]

    async def generate(self, request: ProviderRequest) -> dict:
        self.credentials.require(self.name)
        if self.client is None:
            raise ProviderError("OpenRouter client is not initialized", provider=self.name)

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(request),
                temperature=0,
                max_tokens=request.max_output_tokens,
                response_format={"type": "json_object"},
            )
        except APIStatusError as e:
            body = e.body if isinstance(e.body, dict) else {}
            error_body = body.get("error", body) if isinstance(body, dict) else {}
            code = error_body.get("code") if isinstance(error_body, dict) else None
            raise error_for_status(
                self.name,
                e.status_code,
                short_message(str(e.message)),
                str(code) if code is not None else None,
            ) from e
        except APITimeoutError as e:
            raise ProviderError(
                "OpenRouter request timed out", provider=self.name, failure_kind="timeout"
            ) from e
        except APIConnectionError as e:
            raise ProviderError(
                f"OpenRouter transport error: {short_message(str(e))}",
                provider=self.name,
                failure_kind="transport",
            ) from e

        if isinstance(completion, dict):
            return completion
        return completion.model_dump()

    async def close(self) -> None:
        if self.client is not None and hasattr(self.client, "close"):
            await self.client.close()
