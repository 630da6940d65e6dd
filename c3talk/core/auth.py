"""
Authentication context

The translation core only reads the signed-in user; sign-in flows live in the
embedding application.
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

GUEST_ID_PREFIX = "guest-"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    is_anonymous: bool = False
    phone_number: Optional[str] = None
    email: Optional[str] = None


class AuthContext(Protocol):
    @property
    def current_user(self) -> Optional[CurrentUser]:
        ...


class StaticAuthContext:
    """Mutable holder the app updates on sign-in / sign-out"""

    def __init__(self, user: Optional[CurrentUser] = None):
        self._user = user

    @property
    def current_user(self) -> Optional[CurrentUser]:
        return self._user

    def sign_in(self, user: CurrentUser) -> None:
        self._user = user

    def sign_out(self) -> None:
        self._user = None


def is_guest_id(user_id: str) -> bool:
    return bool(user_id) and user_id.startswith(GUEST_ID_PREFIX)


def new_guest_id() -> str:
    return f"{GUEST_ID_PREFIX}{uuid.uuid4().hex}"
