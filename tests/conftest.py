"""
Conftest
"""

from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from c3talk.core.auth import CurrentUser, StaticAuthContext
from c3talk.core.config import Settings
from c3talk.models import Base
from c3talk.services.credits.credit_service import CreditService
from c3talk.services.translation.llm_clients.base import ProviderRequest
from c3talk.services.translation.orchestrator import ProviderCooldown, ProviderFallbackOrchestrator
from c3talk.services.translation.translation_logger import TranslationLogger
from c3talk.services.translation.translation_service import TranslationService

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# ============ Fakes ============

class InMemoryKeyValueStore:
    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value


class FakeProvider:
    """Scripted provider: each call consumes the next dict (returned) or exception (raised)"""

    def __init__(self, name: str, script: Optional[List[Union[dict, Exception]]] = None):
        self.name = name
        self.script = list(script or [])
        self.requests: List[ProviderRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: ProviderRequest) -> dict:
        self.requests.append(request)
        if not self.script:
            raise AssertionError(f"{self.name} called more times than scripted")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    async def close(self) -> None:
        pass


class RecordingSleeper:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

# ============ Fixtures ============

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_key="AIzaSy-test-gemini-key",
        openrouter_api_key="sk-or-v1-test-openrouter-key",
        retry_max_attempts=3,
        retry_base_delay_ms=2000,
        billing_recovery_attempts=3,
        billing_recovery_base_delay_ms=3000,
        fallback_cooldown_seconds=60,
        disable_credit_deduction=False,
    )


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
def local_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def registered_user() -> CurrentUser:
    return CurrentUser(id="user-123", is_anonymous=False, phone_number="+971501234567")


@pytest.fixture
def auth(registered_user) -> StaticAuthContext:
    return StaticAuthContext(registered_user)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cooldown(clock) -> ProviderCooldown:
    return ProviderCooldown(60, clock=clock)


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def primary() -> FakeProvider:
    return FakeProvider("gemini")


@pytest.fixture
def secondary() -> FakeProvider:
    return FakeProvider("openrouter")


@pytest.fixture
def orchestrator(primary, secondary, cooldown, sleeper, test_settings) -> ProviderFallbackOrchestrator:
    return ProviderFallbackOrchestrator(
        primary,
        secondary,
        cooldown=cooldown,
        settings=test_settings,
        sleep=sleeper,
    )


@pytest.fixture
def credit_service(session_factory, local_store, auth, test_settings) -> CreditService:
    return CreditService(session_factory, local_store, auth, test_settings)


@pytest.fixture
def translation_logger(session_factory, auth) -> TranslationLogger:
    return TranslationLogger(session_factory, auth)


@pytest.fixture
def translation_service(orchestrator, credit_service, translation_logger, auth, test_settings) -> TranslationService:
    return TranslationService(orchestrator, credit_service, translation_logger, auth, test_settings)
