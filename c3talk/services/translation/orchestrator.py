"""
Provider Fallback Orchestrator

Runs one translation request across the primary and secondary providers:

    TRY_COOLDOWN_PROVIDER -> TRY_PRIMARY -> TRY_FALLBACK -> RECOVER -> DONE

1. While the cooldown is active, try the secondary once (no retry). A failure
   here falls through silently.
2. Primary with retry.
3. Fallback-eligible primary failure -> secondary once. Success starts the
   cooldown. A secondary billing failure clears the cooldown and gives the
   primary a few more spaced-out attempts.
4. Normalize. An empty or unusable translation triggers one best-effort
   recovery call to the secondary that never raises.
5. A still-empty translation is replaced by the caller's fallback text.

Steps run strictly in sequence; providers are never raced.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from c3talk.core.config import Settings, settings as default_settings
from c3talk.core.errors import (
    ProviderError,
    ResponseFormatError,
    classify_error,
    is_billing_error,
    is_fallback_eligible,
)
from c3talk.core.logging import get_logger
from c3talk.core.time import Clock, system_clock
from c3talk.schemas.translation import ResponseSchema, TranslationResult
from c3talk.services.translation.llm_clients.base import LLMClient, ProviderRequest
from c3talk.services.translation.normalizer import ResponseNormalizer
from c3talk.services.translation.retry import Sleeper, with_retry

logger = get_logger(__name__)


class OrchestrationState(str, Enum):
    TRY_COOLDOWN_PROVIDER = "try_cooldown_provider"
    TRY_PRIMARY = "try_primary"
    TRY_FALLBACK = "try_fallback"
    RECOVER = "recover"
    DONE = "done"


class ProviderCooldown:
    """
    Soft bias toward the secondary provider after a successful fallback.

    Starts inactive, is set only when the secondary succeeds after a primary
    failure, is cleared on a secondary billing failure and expires by itself.
    Concurrent requests share one instance; a lost update only changes which
    provider is tried first.
    """

    def __init__(self, duration_seconds: float = 60.0, clock: Clock = system_clock):
        self.duration_seconds = duration_seconds
        self.clock = clock
        self.until: float = 0.0

    def is_active(self) -> bool:
        return self.clock() < self.until

    def start(self) -> None:
        self.until = self.clock() + self.duration_seconds
        logger.info(f"Fallback cooldown active for {self.duration_seconds:.0f}s")

    def clear(self) -> None:
        if self.until:
            logger.info("Fallback cooldown cleared")
        self.until = 0.0


# Shared by every request in the process
shared_cooldown = ProviderCooldown(default_settings.fallback_cooldown_seconds)


@dataclass
class OrchestrationOutcome:
    result: TranslationResult
    provider: str
    trace: List[OrchestrationState] = field(default_factory=list)
    recovered: bool = False
    substituted: bool = False


class ProviderFallbackOrchestrator:
    def __init__(
        self,
        primary: LLMClient,
        secondary: LLMClient,
        cooldown: Optional[ProviderCooldown] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[Sleeper] = None,
        key_fingerprint: Optional[str] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.cooldown = cooldown if cooldown is not None else shared_cooldown
        self.normalizer = normalizer or ResponseNormalizer()
        self.settings = settings or default_settings
        self.sleep = sleep or asyncio.sleep
        self.key_fingerprint = key_fingerprint or "unknown"

    async def run(
        self,
        request: ProviderRequest,
        schema: ResponseSchema,
        fallback_text: Optional[str] = None,
        label: str = "text",
    ) -> OrchestrationOutcome:
        """
        Produce a TranslationResult with a non-empty translation or raise.

        fallback_text replaces an empty translation; without it the
        transcription is used, and if that is empty too the request fails.
        """
        trace: List[OrchestrationState] = []
        raw: Any = None
        provider: Optional[str] = None

        # 1. Cooldown bias
        if self.cooldown.is_active():
            trace.append(OrchestrationState.TRY_COOLDOWN_PROVIDER)
            try:
                raw = await self.secondary.generate(request)
                provider = self.secondary.name
            except Exception as e:
                logger.warning(f"{self.secondary.name} {label} call failed during cooldown: {e}")

        # 2./3. Primary with retry, then fallback
        if provider is None:
            raw, provider = await self._primary_with_fallback(request, trace, label)

        # 4. Normalize, recover once if unusable
        result: Optional[TranslationResult] = None
        normalize_error: Optional[ResponseFormatError] = None
        try:
            result = self.normalizer.normalize(raw, schema)
        except ResponseFormatError as e:
            normalize_error = e
            logger.warning(f"Unusable {provider} response for {label}: {e}")

        recovered = False
        if result is None or not result.translation.strip():
            trace.append(OrchestrationState.RECOVER)
            recovery = await self._recover(request, schema, label)
            if recovery is not None and recovery.translation.strip():
                recovered = True
                if result is None:
                    result = recovery
                else:
                    result = result.model_copy(update={"translation": recovery.translation})

        # 5. Never hand back an empty translation
        substituted = False
        if result is None:
            if fallback_text and fallback_text.strip():
                result = TranslationResult(translation=fallback_text)
                substituted = True
            else:
                raise normalize_error
        elif not result.translation.strip():
            substitute = fallback_text if fallback_text and fallback_text.strip() else result.transcription
            if not substitute or not substitute.strip():
                raise ProviderError("No response from AI provider", provider=provider or "unknown")
            result = result.model_copy(update={"translation": substitute})
            substituted = True

        trace.append(OrchestrationState.DONE)
        return OrchestrationOutcome(
            result=result,
            provider=provider,
            trace=trace,
            recovered=recovered,
            substituted=substituted,
        )

    async def _primary_with_fallback(
        self,
        request: ProviderRequest,
        trace: List[OrchestrationState],
        label: str,
    ) -> Tuple[Any, str]:
        trace.append(OrchestrationState.TRY_PRIMARY)
        try:
            raw = await with_retry(
                lambda: self.primary.generate(request),
                max_retries=self.settings.retry_max_attempts,
                base_delay_ms=self.settings.retry_base_delay_ms,
                sleep=self.sleep,
                label=self.primary.name,
            )
            return raw, self.primary.name
        except Exception as primary_error:
            kind = classify_error(primary_error)
            if not is_fallback_eligible(kind, include_rate_limit=self.settings.fallback_on_rate_limit):
                logger.error(f"{self.primary.name} failed for {label} ({kind.value}); not falling back")
                raise
            logger.warning(
                f"Primary provider failed (key: {self.key_fingerprint}), falling back to "
                f"{self.secondary.name} for {label}. {kind.value}: {primary_error}"
            )

        trace.append(OrchestrationState.TRY_FALLBACK)
        try:
            raw = await self.secondary.generate(request)
        except Exception as secondary_error:
            if not is_billing_error(secondary_error):
                raise
            logger.warning(
                f"{self.secondary.name} billing failure; retrying {self.primary.name} for {label}"
            )
            self.cooldown.clear()
            raw = await self._billing_recovery(request, label)
            if raw is None:
                raise secondary_error
            return raw, self.primary.name

        self.cooldown.start()
        return raw, self.secondary.name

    async def _billing_recovery(self, request: ProviderRequest, label: str) -> Optional[Any]:
        attempts = self.settings.billing_recovery_attempts
        for attempt in range(attempts):
            try:
                return await self.primary.generate(request)
            except Exception as e:
                if attempt >= attempts - 1:
                    logger.error(f"{self.primary.name} recovery for {label} exhausted: {e}")
                    break
                delay_ms = self.settings.billing_recovery_base_delay_ms * (2 ** attempt)
                logger.warning(
                    f"{self.primary.name} recovery attempt {attempt + 1}/{attempts} failed; "
                    f"waiting {delay_ms}ms"
                )
                await self.sleep(delay_ms / 1000)
        return None

    async def _recover(
        self,
        request: ProviderRequest,
        schema: ResponseSchema,
        label: str,
    ) -> Optional[TranslationResult]:
        try:
            raw = await self.secondary.generate(request)
            return self.normalizer.normalize(raw, schema)
        except Exception as e:
            logger.warning(f"Recovery pass via {self.secondary.name} failed for {label}: {e}")
            return None
