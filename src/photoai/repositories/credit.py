"""Credit ledger repository.

Provides atomic balance operations for UserCredit rows. The balance is only ever
changed by single conditional statements (compare-and-decrement, upsert-increment);
there is no read-modify-write path.
"""

from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from photoai.core.timezone import utc_now
from photoai.models.credit import CreditReason, CreditTransaction, UserCredit
from photoai.services.exceptions import InsufficientCredit


class CreditRepository:
    """Repository for account credit balances.

    Methods:
    - get_balance: Current balance (0 for unknown accounts)
    - try_debit: Conditional decrement, raises InsufficientCredit
    - credit: Upsert increment (top-ups, refunds, adjustments)
    - list_transactions: Ledger history, newest first
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_balance(self, user_id: str) -> int:
        """Return the account's current balance.

        Selects the column rather than the entity so a row already loaded in the
        session identity map can never return a stale amount.

        Args:
            user_id: Opaque account identifier

        Returns:
            Balance in credits, 0 if the account has no credit row
        """
        result = await self.session.execute(
            select(UserCredit.amount).where(UserCredit.user_id == user_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none() or 0

    async def try_debit(
        self,
        user_id: str,
        amount: int,
        reason: CreditReason,
        reference: str | None = None,
    ) -> int:
        """Atomically check and decrement the balance.

        Query explanation:
        - UPDATE user_credits SET amount = amount - :amount
        - WHERE user_id = :user_id AND amount >= :amount

        The check and the decrement are one statement, so two concurrent callers
        cannot both pass the check. On PostgreSQL the updated row stays locked
        until the surrounding transaction ends.

        Args:
            user_id: Opaque account identifier
            amount: Credits to take (must be positive)
            reason: Ledger reason recorded with the debit
            reference: Optional free-text reference (job ids, pack id)

        Returns:
            Balance after the debit

        Raises:
            ValueError: If amount is not positive
            InsufficientCredit: If the balance is lower than amount
        """
        if amount <= 0:
            raise ValueError(f"Debit amount must be positive (got {amount})")

        result = await self.session.execute(
            update(UserCredit)
            .where(
                UserCredit.user_id == user_id,  # type: ignore[arg-type]
                UserCredit.amount >= amount,  # type: ignore[arg-type]
            )
            .values(amount=UserCredit.amount - amount, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:  # type: ignore[attr-defined]
            available = await self.get_balance(user_id)
            raise InsufficientCredit(user_id, required=amount, available=available)

        balance = await self.get_balance(user_id)
        await self._record(user_id, -amount, reason, reference, balance)
        return balance

    async def credit(
        self,
        user_id: str,
        amount: int,
        reason: CreditReason = CreditReason.TOP_UP,
        reference: str | None = None,
    ) -> int:
        """Increase the balance, creating the account row if needed (UPSERT).

        Uses INSERT ... ON CONFLICT (user_id) DO UPDATE SET amount = amount + excluded.amount.

        Args:
            user_id: Opaque account identifier
            amount: Credits to add (must be positive)
            reason: Ledger reason recorded with the credit
            reference: Optional free-text reference

        Returns:
            Balance after the credit

        Raises:
            ValueError: If amount is not positive
        """
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive (got {amount})")

        now = utc_now()
        insert = self._insert()
        stmt = insert(UserCredit).values(
            id=uuid4(),
            user_id=user_id,
            amount=amount,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_={
                "amount": UserCredit.amount + stmt.excluded.amount,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)

        balance = await self.get_balance(user_id)
        await self._record(user_id, amount, reason, reference, balance)
        return balance

    async def list_transactions(
        self, user_id: str, limit: int = 100, offset: int = 0
    ) -> list[CreditTransaction]:
        """Retrieve an account's ledger history.

        Returns:
            Transactions ordered by creation time (newest first)
        """
        result = await self.session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)  # type: ignore[arg-type]
            .order_by(CreditTransaction.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def _record(
        self,
        user_id: str,
        delta: int,
        reason: CreditReason,
        reference: str | None,
        balance_after: int,
    ) -> None:
        self.session.add(
            CreditTransaction(
                user_id=user_id,
                delta=delta,
                reason=reason,
                reference=reference[:1000] if reference else None,
                balance_after=balance_after,
            )
        )
        await self.session.flush()

    def _insert(self):
        # ON CONFLICT upserts are dialect-specific constructs
        if self.session.get_bind().dialect.name == "sqlite":
            return sqlite.insert
        return postgresql.insert
