"""
Application Entry Point

Builds the translation service once at startup: configuration is validated,
both provider clients are constructed and injected, and database / redis
resources are opened and closed around the embedding app's lifetime.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from c3talk.core.auth import AuthContext
from c3talk.core.config import Settings, settings as default_settings
from c3talk.core.errors import ConfigurationError
from c3talk.core.logging import get_logger, setup_logging
from c3talk.infra import db
from c3talk.infra.redis import KeyValueStore, close_redis_pool, get_guest_store, init_redis_pool
from c3talk.services.credits.credit_service import CreditService
from c3talk.services.translation.credentials import PRIMARY, CredentialResolver
from c3talk.services.translation.llm_clients.gemini_client import GeminiClient
from c3talk.services.translation.llm_clients.openrouter_client import OpenRouterClient
from c3talk.services.translation.orchestrator import (
    ProviderCooldown,
    ProviderFallbackOrchestrator,
    shared_cooldown,
)
from c3talk.services.translation.translation_logger import TranslationLogger
from c3talk.services.translation.translation_service import TranslationService

logger = get_logger(__name__)


def build_translation_service(
    auth: AuthContext,
    local_store: KeyValueStore,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    settings: Optional[Settings] = None,
    credentials: Optional[CredentialResolver] = None,
    cooldown: Optional[ProviderCooldown] = None,
) -> TranslationService:
    """Wire every collaborator of the translation service"""
    settings = settings or default_settings
    session_factory = session_factory or db.AsyncSessionLocal
    credentials = credentials or CredentialResolver(settings)

    available = credentials.validate()
    if not any(available.values()):
        if settings.is_production:
            raise ConfigurationError("No LLM provider credentials configured")
        logger.warning("No LLM provider credentials configured; translations will degrade")

    primary = GeminiClient(
        credentials,
        model=settings.gemini_model,
        base_url=settings.gemini_api_url,
        timeout=settings.provider_timeout_seconds,
    )
    secondary = OpenRouterClient(
        credentials,
        model=settings.openrouter_model,
        base_url=settings.openrouter_base_url,
        timeout=settings.provider_timeout_seconds,
    )
    orchestrator = ProviderFallbackOrchestrator(
        primary,
        secondary,
        cooldown=cooldown or shared_cooldown,
        settings=settings,
        key_fingerprint=credentials.fingerprint(PRIMARY),
    )

    credits = CreditService(session_factory, local_store, auth, settings)
    translation_logger = TranslationLogger(session_factory, auth)
    return TranslationService(orchestrator, credits, translation_logger, auth, settings)


@asynccontextmanager
async def lifespan(auth: AuthContext) -> AsyncIterator[TranslationService]:
    # Startup
    setup_logging()
    await db.init_models()
    await init_redis_pool()
    service = build_translation_service(auth, await get_guest_store())

    try:
        yield service
    finally:
        # Shutdown
        await service.orchestrator.primary.close()
        await service.orchestrator.secondary.close()
        await close_redis_pool()
        await db.close_db_connection()
