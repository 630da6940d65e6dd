"""
Translation Logger

Appends an audit row for every completed exchange. Failures are returned as
an error Result and logged; they never reach the caller's result.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from c3talk.core.auth import AuthContext
from c3talk.core.logging import get_logger
from c3talk.core.result import Result
from c3talk.models.translation import TranslationLog
from c3talk.schemas.translation import RequestKind, TranslationLogCreate

logger = get_logger(__name__)


class TranslationLogger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], auth: AuthContext):
        self.session_factory = session_factory
        self.auth = auth

    async def log(
        self,
        kind: RequestKind,
        source_language: str,
        target_language: str,
        original: Optional[str],
        translated: Optional[str],
    ) -> Result[int]:
        """Insert one audit row for the current user; no user, no row"""
        user = self.auth.current_user
        if user is None:
            return Result.ok(None)

        original = original or ""
        entry = TranslationLogCreate(
            user_id=user.id,
            type=kind,
            source_language=source_language,
            target_language=target_language,
            original=original,
            translated=translated if translated and translated.strip() else original,
            phone_number=user.phone_number,
        )

        try:
            async with self.session_factory() as session:
                row = TranslationLog(**entry.model_dump(mode="json"))
                session.add(row)
                await session.commit()
                return Result.ok(row.id)
        except Exception as e:
            logger.error(f"Failed to log translation stats: {e}")
            return Result.err(e)
