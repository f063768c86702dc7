"""Credit entities - per-account balance and its append-only history."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel

from photoai.core.timezone import utc_now


class CreditReason(str, Enum):
    """Why a balance changed."""

    IMAGE_GENERATION = "image_generation"
    PACK_GENERATION = "pack_generation"
    TOP_UP = "top_up"
    REFUND = "refund"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class UserCredit(SQLModel, table=True):
    """UserCredit holds one account's spendable balance (single row per account)."""

    __tablename__ = "user_credits"  # type: ignore[assignment]
    __table_args__ = (CheckConstraint("amount >= 0", name="ck_user_credits_amount_non_negative"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, unique=True, index=True)
    amount: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class CreditTransaction(SQLModel, table=True):
    """CreditTransaction records every balance change. Rows are never updated."""

    __tablename__ = "credit_transactions"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    delta: int  # Negative for debits
    reason: CreditReason
    reference: Optional[str] = Field(default=None, max_length=1000)
    balance_after: int
    created_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True), index=True
    )
