"""Credit balance endpoints.

- GET /credits - Caller's current balance
- GET /credits/transactions - Caller's ledger history, newest first
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from photoai.api.dependencies import get_current_user_id, get_uow_factory
from photoai.api.schemas import CamelModel
from photoai.models.credit import CreditReason

router = APIRouter(prefix="/credits", tags=["credits"])


class CreditsResponse(CamelModel):
    credits: int


class TransactionDTO(CamelModel):
    delta: int
    reason: CreditReason
    reference: str | None = None
    balance_after: int
    created_at: datetime


class TransactionsResponse(CamelModel):
    transactions: list[TransactionDTO]


@router.get("", response_model=CreditsResponse, status_code=status.HTTP_200_OK)
async def get_credits(
    user_id: str = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> CreditsResponse:
    """Get the caller's balance (0 for accounts that never had credits)."""
    async with await uow_factory() as uow:
        balance = await uow.credits.get_balance(user_id)

    return CreditsResponse(credits=balance)


@router.get("/transactions", response_model=TransactionsResponse, status_code=status.HTTP_200_OK)
async def list_transactions(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> TransactionsResponse:
    async with await uow_factory() as uow:
        transactions = await uow.credits.list_transactions(user_id, limit=limit, offset=offset)

    return TransactionsResponse(
        transactions=[
            TransactionDTO(
                delta=tx.delta,
                reason=tx.reason,
                reference=tx.reference,
                balance_after=tx.balance_after,
                created_at=tx.created_at,
            )
            for tx in transactions
        ]
    )
