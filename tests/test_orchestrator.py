"""
Provider fallback orchestrator tests
"""

import pytest

from c3talk.core.errors import (
    MissingCredentialError,
    ProviderBillingError,
    ProviderError,
    ProviderOverloadedError,
    RateLimitedError,
    ResponseParseError,
)
from c3talk.schemas.translation import ResponseSchema
from c3talk.services.translation.llm_clients.base import ProviderRequest
from c3talk.services.translation.orchestrator import (
    OrchestrationState,
    ProviderCooldown,
    ProviderFallbackOrchestrator,
)

REQUEST = ProviderRequest(prompt="Translate: hello")
SCHEMA = ResponseSchema()


def chat_envelope(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def gemini_envelope(text):
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def overloaded():
    return ProviderOverloadedError("gemini error: 503 overloaded", provider="gemini", status_code=503)


def billing():
    return ProviderBillingError(
        "openrouter error: 402 This request requires at least $0.50",
        provider="openrouter",
        status_code=402,
    )


# ============ Cooldown ============

class TestProviderCooldown:
    def test_starts_inactive_and_expires(self, clock):
        cooldown = ProviderCooldown(60, clock=clock)
        assert not cooldown.is_active()

        cooldown.start()
        assert cooldown.is_active()

        clock.advance(59)
        assert cooldown.is_active()

        clock.advance(1)
        assert not cooldown.is_active()

    def test_clear(self, cooldown):
        cooldown.start()
        cooldown.clear()

        assert not cooldown.is_active()


# ============ Primary / fallback ============

class TestPrimaryPath:
    @pytest.mark.asyncio
    async def test_primary_success(self, orchestrator, primary, secondary):
        primary.script = [gemini_envelope('{"translation": "ሰላም"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.result.translation == "ሰላም"
        assert outcome.provider == "gemini"
        assert outcome.trace == [OrchestrationState.TRY_PRIMARY, OrchestrationState.DONE]
        assert secondary.calls == 0

    @pytest.mark.asyncio
    async def test_overloaded_twice_then_success_never_touches_secondary(
        self, orchestrator, primary, secondary, sleeper, cooldown
    ):
        # Setup
        primary.script = [overloaded(), overloaded(), gemini_envelope('{"translation": "ok"}')]

        # Execute
        outcome = await orchestrator.run(REQUEST, SCHEMA)

        # Verify
        assert outcome.result.translation == "ok"
        assert primary.calls == 3
        assert secondary.calls == 0
        assert sleeper.delays == [2.0, 4.0]
        assert not cooldown.is_active()

    @pytest.mark.asyncio
    async def test_exhausted_primary_falls_back_and_starts_cooldown(
        self, orchestrator, primary, secondary, cooldown
    ):
        primary.script = [overloaded(), overloaded(), overloaded()]
        secondary.script = [chat_envelope('{"translation": "Akkam"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.result.translation == "Akkam"
        assert outcome.provider == "openrouter"
        assert OrchestrationState.TRY_FALLBACK in outcome.trace
        assert primary.calls == 3
        assert secondary.calls == 1
        assert cooldown.is_active()

    @pytest.mark.asyncio
    async def test_missing_primary_key_falls_back(self, orchestrator, primary, secondary):
        primary.script = [MissingCredentialError("gemini API key is missing", provider="gemini")]
        secondary.script = [chat_envelope('{"translation": "Akkam"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.provider == "openrouter"
        assert primary.calls == 1

    @pytest.mark.asyncio
    async def test_client_error_does_not_fall_back(self, orchestrator, primary, secondary):
        primary.script = [ProviderError("gemini error: 400 invalid argument", status_code=400)]

        with pytest.raises(ProviderError):
            await orchestrator.run(REQUEST, SCHEMA)

        assert secondary.calls == 0

    @pytest.mark.asyncio
    async def test_non_billing_secondary_error_propagates(self, orchestrator, primary, secondary):
        primary.script = [overloaded(), overloaded(), overloaded()]
        secondary.script = [ProviderError("openrouter error: 500 boom", status_code=500)]

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.run(REQUEST, SCHEMA)

        assert exc_info.value.status_code == 500


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried_but_falls_back(self, orchestrator, primary, secondary, sleeper):
        primary.script = [RateLimitedError("gemini error: 429", status_code=429)]
        secondary.script = [chat_envelope('{"translation": "ok"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.provider == "openrouter"
        assert primary.calls == 1
        assert sleeper.delays == []

    @pytest.mark.asyncio
    async def test_rate_limit_propagates_when_fallback_disabled(
        self, primary, secondary, cooldown, sleeper, test_settings
    ):
        # Setup
        test_settings.fallback_on_rate_limit = False
        orchestrator = ProviderFallbackOrchestrator(
            primary, secondary, cooldown=cooldown, settings=test_settings, sleep=sleeper
        )
        primary.script = [RateLimitedError("gemini error: 429", status_code=429)]

        # Execute / Verify
        with pytest.raises(RateLimitedError):
            await orchestrator.run(REQUEST, SCHEMA)

        assert primary.calls == 1
        assert secondary.calls == 0


class TestCooldownPath:
    @pytest.mark.asyncio
    async def test_second_request_uses_secondary_first(self, orchestrator, primary, secondary, clock):
        # First request: primary exhausted, secondary succeeds
        primary.script = [overloaded(), overloaded(), overloaded()]
        secondary.script = [chat_envelope('{"translation": "first"}')]
        await orchestrator.run(REQUEST, SCHEMA)

        # Second request 10s later: secondary tried before primary
        clock.advance(10)
        secondary.script = [chat_envelope('{"translation": "second"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.result.translation == "second"
        assert outcome.provider == "openrouter"
        assert outcome.trace[0] == OrchestrationState.TRY_COOLDOWN_PROVIDER
        assert primary.calls == 3
        assert secondary.calls == 2

    @pytest.mark.asyncio
    async def test_cooldown_failure_falls_through_to_primary(
        self, orchestrator, primary, secondary, cooldown
    ):
        cooldown.start()
        secondary.script = [ProviderError("openrouter error: 500", status_code=500)]
        primary.script = [gemini_envelope('{"translation": "ok"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.provider == "gemini"
        assert outcome.trace[:2] == [
            OrchestrationState.TRY_COOLDOWN_PROVIDER,
            OrchestrationState.TRY_PRIMARY,
        ]
        assert cooldown.is_active()

    @pytest.mark.asyncio
    async def test_expired_cooldown_goes_to_primary(self, orchestrator, primary, secondary, cooldown, clock):
        cooldown.start()
        clock.advance(61)
        primary.script = [gemini_envelope('{"translation": "ok"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.provider == "gemini"
        assert secondary.calls == 0


class TestBillingRecovery:
    @pytest.mark.asyncio
    async def test_secondary_billing_retries_primary(
        self, orchestrator, primary, secondary, sleeper, cooldown
    ):
        # Setup
        cooldown.start()
        secondary.script = [
            ProviderError("openrouter error: 500", status_code=500),  # cooldown attempt
            billing(),
        ]
        primary.script = [
            overloaded(), overloaded(), overloaded(),  # retry policy
            overloaded(),                               # recovery attempt 1
            gemini_envelope('{"translation": "recovered"}'),
        ]

        # Execute
        outcome = await orchestrator.run(REQUEST, SCHEMA)

        # Verify
        assert outcome.result.translation == "recovered"
        assert outcome.provider == "gemini"
        assert not cooldown.is_active()
        assert sleeper.delays == [2.0, 4.0, 3.0]

    @pytest.mark.asyncio
    async def test_exhausted_recovery_raises_billing_error(self, orchestrator, primary, secondary, sleeper):
        primary.script = [overloaded()] * 6
        secondary.script = [billing()]

        with pytest.raises(ProviderBillingError):
            await orchestrator.run(REQUEST, SCHEMA)

        assert primary.calls == 6
        assert sleeper.delays == [2.0, 4.0, 3.0, 6.0]


class TestRecoveryPass:
    @pytest.mark.asyncio
    async def test_empty_translation_recovered_from_secondary(self, orchestrator, primary, secondary):
        primary.script = [gemini_envelope('{"translation": ""}')]
        secondary.script = [chat_envelope('{"translation": "Akkam"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA, fallback_text="hello")

        assert outcome.result.translation == "Akkam"
        assert outcome.recovered
        assert not outcome.substituted
        assert OrchestrationState.RECOVER in outcome.trace

    @pytest.mark.asyncio
    async def test_failed_recovery_substitutes_fallback_text(self, orchestrator, primary, secondary):
        primary.script = [gemini_envelope('{"translation": "  "}')]
        secondary.script = [RateLimitedError("openrouter error: 429", status_code=429)]

        outcome = await orchestrator.run(REQUEST, SCHEMA, fallback_text="hello")

        assert outcome.result.translation == "hello"
        assert outcome.substituted

    @pytest.mark.asyncio
    async def test_unparseable_response_recovers(self, orchestrator, primary, secondary):
        primary.script = [gemini_envelope("Sorry, I can't help with that")]
        secondary.script = [chat_envelope('{"translation": "ok"}')]

        outcome = await orchestrator.run(REQUEST, SCHEMA)

        assert outcome.result.translation == "ok"
        assert outcome.recovered

    @pytest.mark.asyncio
    async def test_unparseable_response_without_fallback_raises(self, orchestrator, primary, secondary):
        primary.script = [gemini_envelope("Sorry, I can't help with that")]
        secondary.script = [chat_envelope("still not json")]

        with pytest.raises(ResponseParseError):
            await orchestrator.run(REQUEST, SCHEMA)

    @pytest.mark.asyncio
    async def test_empty_audio_translation_uses_transcription(self, orchestrator, primary, secondary):
        schema = ResponseSchema(transcription_required=True)
        primary.script = [gemini_envelope('{"transcription": "hello", "translation": ""}')]
        secondary.script = [chat_envelope('{"transcription": "hello", "translation": ""}')]

        outcome = await orchestrator.run(REQUEST, schema)

        assert outcome.result.transcription == "hello"
        assert outcome.result.translation == "hello"
        assert outcome.substituted

    @pytest.mark.asyncio
    async def test_empty_everything_raises(self, orchestrator, primary, secondary):
        schema = ResponseSchema(transcription_required=True)
        primary.script = [gemini_envelope('{"transcription": "", "translation": ""}')]
        secondary.script = [chat_envelope('{"transcription": "", "translation": ""}')]

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.run(REQUEST, schema)

        assert "No response from AI provider" in str(exc_info.value)
