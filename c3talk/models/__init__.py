from c3talk.models.base import Base
from c3talk.models.credit import CreditAccount
from c3talk.models.translation import TranslationLog

__all__ = [
    "Base",
    "CreditAccount",
    "TranslationLog",
]
