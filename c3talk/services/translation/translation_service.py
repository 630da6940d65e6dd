"""
Translation Service

Entry points for the UI layer. Each flow checks auth and credits, runs the
provider orchestrator, writes the audit log and charges the user.

Degrade policy: text and reply translation never surface a provider failure;
the original text comes back as the "translation". Credit and authentication
errors always propagate. Audio propagates everything, since a transcript
cannot be invented.
"""

from typing import Awaitable, Optional

from c3talk.core.auth import AuthContext, CurrentUser
from c3talk.core.config import Settings, settings as default_settings
from c3talk.core.errors import AuthenticationError, InsufficientCreditsError
from c3talk.core.logging import get_logger
from c3talk.core.result import Result
from c3talk.schemas.translation import (
    Language,
    RequestKind,
    ResponseSchema,
    TranslationRequest,
    TranslationResult,
)
from c3talk.services.credits.credit_service import CreditService
from c3talk.services.translation import prompts
from c3talk.services.translation.prompts import LanguageLike, language_name
from c3talk.services.translation.llm_clients.base import ProviderRequest
from c3talk.services.translation.orchestrator import ProviderFallbackOrchestrator
from c3talk.services.translation.translation_logger import TranslationLogger

logger = get_logger(__name__)

ENGLISH = Language.ENGLISH.value


class TranslationService:
    def __init__(
        self,
        orchestrator: ProviderFallbackOrchestrator,
        credits: CreditService,
        translation_logger: TranslationLogger,
        auth: AuthContext,
        settings: Optional[Settings] = None,
    ):
        self.orchestrator = orchestrator
        self.credits = credits
        self.translation_logger = translation_logger
        self.auth = auth
        self.settings = settings or default_settings

    async def process_incoming_audio(
        self,
        audio: bytes,
        mime_type: str,
        target_language: LanguageLike,
    ) -> TranslationResult:
        """Transcribe English audio and translate it into the target language."""
        if not audio:
            raise ValueError("Audio payload is empty")

        user = self._require_user()
        cost = self.settings.audio_credit_cost
        await self._ensure_credits(user, cost)

        target = language_name(target_language)
        request = ProviderRequest(
            prompt=prompts.audio_prompt(target),
            max_output_tokens=self.settings.audio_max_output_tokens,
            audio=audio,
            mime_type=mime_type,
            transcription_required=True,
        )

        try:
            outcome = await self.orchestrator.run(
                request,
                ResponseSchema(transcription_required=True),
                label=RequestKind.AUDIO.value,
            )
        except Exception as e:
            logger.error(f"Audio processing error: {e}")
            raise

        result = outcome.result
        await self.translation_logger.log(
            RequestKind.AUDIO, ENGLISH, target, result.transcription, result.translation
        )
        await self._charge(user, cost)
        return result

    async def process_incoming_text(
        self,
        text: str,
        target_language: LanguageLike,
    ) -> TranslationResult:
        """Translate English text into the target language; degrades to the input."""
        user = self._require_user()
        cost = self.settings.text_credit_cost
        await self._ensure_credits(user, cost)

        if not text or not text.strip():
            return TranslationResult(translation=text or "")

        target = language_name(target_language)
        outcome = await self._capture(
            self._translate_text(user, text, target, cost), RequestKind.TEXT
        )
        return outcome.unwrap_or(TranslationResult(translation=text))

    async def translate_reply(
        self,
        text: str,
        source_language: LanguageLike,
    ) -> TranslationResult:
        """Translate a native-language reply back into English; degrades to the input."""
        if not text or not text.strip():
            return TranslationResult(translation=text or "")

        source = language_name(source_language)
        outcome = await self._capture(self._translate_reply(text, source), RequestKind.REPLY)
        return outcome.unwrap_or(TranslationResult(translation=text))

    async def process(self, request: TranslationRequest) -> TranslationResult:
        """Dispatch one UI action by kind"""
        payload = request.payload
        if request.kind == RequestKind.AUDIO:
            if not isinstance(payload, bytes):
                raise ValueError("Audio payload must be bytes")
            return await self.process_incoming_audio(payload, request.mime_type or "", request.target_language)

        text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
        if request.kind == RequestKind.TEXT:
            return await self.process_incoming_text(text, request.target_language)
        return await self.translate_reply(text, request.source_language)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def _translate_text(
        self, user: CurrentUser, text: str, target: str, cost: float
    ) -> TranslationResult:
        request = ProviderRequest(
            prompt=prompts.text_prompt(text, target),
            max_output_tokens=self.settings.text_max_output_tokens,
        )
        outcome = await self.orchestrator.run(
            request, ResponseSchema(), fallback_text=text, label=RequestKind.TEXT.value
        )
        result = TranslationResult(translation=outcome.result.translation)

        await self.translation_logger.log(RequestKind.TEXT, ENGLISH, target, text, result.translation)
        await self._charge(user, cost)
        return result

    async def _translate_reply(self, text: str, source: str) -> TranslationResult:
        request = ProviderRequest(
            prompt=prompts.reply_prompt(text, source),
            max_output_tokens=self.settings.text_max_output_tokens,
        )
        outcome = await self.orchestrator.run(
            request, ResponseSchema(), fallback_text=text, label=RequestKind.REPLY.value
        )
        result = TranslationResult(translation=outcome.result.translation)

        await self.translation_logger.log(RequestKind.REPLY, source, ENGLISH, text, result.translation)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_user(self) -> CurrentUser:
        user = self.auth.current_user
        if user is None:
            raise AuthenticationError()
        return user

    async def _ensure_credits(self, user: CurrentUser, cost: float) -> None:
        """Pre-check so no provider quota is spent on an unpayable request"""
        if self.credits.deduction_disabled:
            return
        balance = await self.credits.get_balance(user.id)
        if balance < cost:
            raise InsufficientCreditsError(required=cost, balance=balance)

    async def _charge(self, user: CurrentUser, cost: float) -> None:
        if not await self.credits.debit(user.id, cost):
            balance = await self.credits.get_balance(user.id)
            raise InsufficientCreditsError(required=cost, balance=balance)

    async def _capture(
        self, operation: Awaitable[TranslationResult], kind: RequestKind
    ) -> Result[TranslationResult]:
        try:
            return Result.ok(await operation)
        except (InsufficientCreditsError, AuthenticationError):
            raise
        except Exception as e:
            logger.warning(f"{kind.value} translation failed, returning original text: {e}")
            return Result.err(e)
