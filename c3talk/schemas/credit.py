"""
Credit Schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CreditAccountRead(BaseModel):
    user_id: str
    balance: float = Field(ge=0)
    is_premium: bool = False
    account_type: str = "guest"
    has_active_subscription: bool = False
    subscription_end_date: Optional[datetime] = None

    class Config:
        from_attributes = True
