"""
Credit Service

Per-user credit ledger. Registered users live in the durable account store
(SQLAlchemy); guest users live in the device-local key-value store.

Balances never go negative: registered debits are a single conditional UPDATE
inside a transaction, guest debits check-then-write against the local counter.
"""

import math
import re
from typing import Callable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import func

from c3talk.core.auth import AuthContext, CurrentUser, is_guest_id, new_guest_id
from c3talk.core.config import Settings, settings as default_settings
from c3talk.core.logging import get_logger
from c3talk.core.time import one_year_later, utc_now
from c3talk.infra.redis import KeyValueStore
from c3talk.models.credit import CreditAccount
from c3talk.schemas.credit import CreditAccountRead

logger = get_logger(__name__)

CreditListener = Callable[[str, float], None]

DEVICE_ID_KEY = "device_id"


def _round(value: float) -> float:
    # Fractional costs (0.25) accumulate; keep the stored value tidy
    return round(value, 6)


class CreditService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        local_store: KeyValueStore,
        auth: AuthContext,
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.local_store = local_store
        self.auth = auth
        self.settings = settings or default_settings
        self._listeners: List[CreditListener] = []

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: CreditListener) -> Callable[[], None]:
        """Register a balance-change listener; returns an unsubscribe callable"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user_id: str, balance: float) -> None:
        for listener in list(self._listeners):
            try:
                listener(user_id, balance)
            except Exception as e:
                logger.error(f"Credit listener failed for {user_id}: {e}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def deduction_disabled(self) -> bool:
        return self.settings.disable_credit_deduction

    async def get_or_create_device_id(self) -> str:
        """Guest identity for this device, generated once and persisted"""
        device_id = await self.local_store.get(DEVICE_ID_KEY)
        if device_id and is_guest_id(device_id):
            return device_id
        device_id = new_guest_id()
        await self.local_store.set(DEVICE_ID_KEY, device_id)
        logger.info(f"Created guest device identity {device_id}")
        return device_id

    async def get_balance(self, user_id: str) -> float:
        if is_guest_id(user_id):
            return await self._read_guest_balance(user_id)

        async with self.session_factory() as session:
            account = await session.get(CreditAccount, user_id)
            if account is None:
                return 0.0
            return float(account.balance)

    async def debit(self, user_id: str, amount: float) -> bool:
        """
        Deduct amount from the user's balance.

        Returns False (and leaves the balance untouched) when the balance would
        go negative or the account does not exist. Always True while credit
        deduction is disabled.
        """
        if self.deduction_disabled:
            return True
        if amount < 0 or math.isnan(amount):
            raise ValueError("Debit amount must be a non-negative number")
        if amount == 0:
            return True

        if is_guest_id(user_id):
            return await self._debit_guest(user_id, amount)
        return await self._debit_registered(user_id, amount)

    async def initialize(self, user_id: str) -> float:
        """
        Ensure an account exists and return its balance.

        Idempotent: an existing account is returned unchanged.
        """
        if is_guest_id(user_id):
            return await self._read_guest_balance(user_id)

        async with self.session_factory() as session:
            existing = await session.get(CreditAccount, user_id)
            if existing is not None:
                return float(existing.balance)

            account = self._new_account(user_id, self._user_for(user_id))
            session.add(account)
            try:
                await session.commit()
            except IntegrityError:
                # Another request created it first
                await session.rollback()
                existing = await session.get(CreditAccount, user_id)
                return float(existing.balance) if existing else 0.0

            logger.info(
                f"Created {account.account_type} credit account for {user_id} "
                f"with {account.balance} credits"
            )
            return float(account.balance)

    async def add_credits(self, user_id: str, amount: float) -> float:
        """Plan purchase top-up; marks registered accounts premium"""
        if amount <= 0:
            raise ValueError("Top-up amount must be positive")

        if is_guest_id(user_id):
            balance = _round(await self._read_guest_balance(user_id) + amount)
            await self._write_guest_balance(user_id, balance)
            self._notify(user_id, balance)
            return balance

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(CreditAccount)
                    .where(CreditAccount.user_id == user_id)
                    .values(
                        balance=CreditAccount.balance + amount,
                        is_premium=True,
                        last_updated=func.now(),
                    )
                )
                if result.rowcount != 1:
                    raise LookupError(f"No credit account for user {user_id}")
                balance = await session.scalar(
                    select(CreditAccount.balance).where(CreditAccount.user_id == user_id)
                )

        balance = float(balance)
        self._notify(user_id, balance)
        return balance

    async def get_account(self, user_id: str) -> Optional[CreditAccountRead]:
        if is_guest_id(user_id):
            return CreditAccountRead(
                user_id=user_id,
                balance=await self._read_guest_balance(user_id),
            )
        async with self.session_factory() as session:
            account = await session.get(CreditAccount, user_id)
            return CreditAccountRead.model_validate(account) if account else None

    # ------------------------------------------------------------------
    # Registered accounts
    # ------------------------------------------------------------------

    async def _debit_registered(self, user_id: str, amount: float) -> bool:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    # Check and write in one statement
                    result = await session.execute(
                        update(CreditAccount)
                        .where(
                            CreditAccount.user_id == user_id,
                            CreditAccount.balance >= amount,
                        )
                        .values(
                            balance=CreditAccount.balance - amount,
                            last_updated=func.now(),
                        )
                    )
                    if result.rowcount != 1:
                        logger.warning(f"Debit of {amount} rejected for {user_id}")
                        return False
                    balance = await session.scalar(
                        select(CreditAccount.balance).where(CreditAccount.user_id == user_id)
                    )
        except SQLAlchemyError as e:
            logger.error(f"Debit transaction failed for {user_id}: {e}")
            return False

        self._notify(user_id, float(balance))
        return True

    def _user_for(self, user_id: str) -> Optional[CurrentUser]:
        user = self.auth.current_user
        if user is not None and user.id == user_id:
            return user
        return None

    def _new_account(self, user_id: str, user: Optional[CurrentUser]) -> CreditAccount:
        # Unknown or anonymous sessions get the guest grant; only a signed-in,
        # non-anonymous user is provisioned as premium.
        if user is None or user.is_anonymous:
            return CreditAccount(
                user_id=user_id,
                balance=float(self.settings.initial_guest_credits),
                is_premium=False,
                account_type="guest",
                phone_number=None,
            )

        now = utc_now()
        return CreditAccount(
            user_id=user_id,
            balance=float(self.settings.plan_credits),
            is_premium=True,
            account_type="premium",
            has_active_subscription=True,
            subscription_status="active",
            subscription_start_date=now,
            subscription_end_date=one_year_later(now, self.settings.subscription_days),
            phone_number=user.phone_number or phone_from_email(user.email),
            email=user.email,
        )

    # ------------------------------------------------------------------
    # Guest accounts
    # ------------------------------------------------------------------

    def _guest_key(self, user_id: str) -> str:
        return f"guest_credits:{user_id}"

    async def _read_guest_balance(self, user_id: str) -> float:
        initial = float(self.settings.initial_guest_credits)
        raw = await self.local_store.get(self._guest_key(user_id))
        if raw is None:
            await self._write_guest_balance(user_id, initial)
            self._notify(user_id, initial)
            return initial

        try:
            balance = float(raw)
        except (TypeError, ValueError):
            balance = float("nan")
        if math.isnan(balance) or math.isinf(balance) or balance < 0:
            logger.warning(f"Corrupt guest balance {raw!r} for {user_id}; resetting to {initial}")
            await self._write_guest_balance(user_id, initial)
            self._notify(user_id, initial)
            return initial
        return balance

    async def _write_guest_balance(self, user_id: str, balance: float) -> None:
        await self.local_store.set(self._guest_key(user_id), repr(_round(balance)))

    async def _debit_guest(self, user_id: str, amount: float) -> bool:
        # Not atomic across tabs; guest state is single-device
        balance = await self._read_guest_balance(user_id)
        new_balance = _round(balance - amount)
        if new_balance < 0:
            return False
        await self._write_guest_balance(user_id, new_balance)
        self._notify(user_id, new_balance)
        return True


def phone_from_email(email: Optional[str]) -> Optional[str]:
    """'971501234567@c3talk.com' -> '+971501234567'"""
    if not email or "@" not in email:
        return None
    local = email.split("@", 1)[0]
    if not re.fullmatch(r"\+?\d{6,15}", local):
        return None
    return local if local.startswith("+") else f"+{local}"
