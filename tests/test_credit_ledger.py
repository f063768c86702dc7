"""Credit ledger tests.

Tests focus on balance arithmetic and the atomic check-and-decrement:
- try_debit decreases by exactly the amount, or not at all
- Concurrent debits can never overdraw
- Every change is recorded in the transaction history
"""

import asyncio

import pytest

from photoai.models.credit import CreditReason
from photoai.services.exceptions import InsufficientCredit


@pytest.mark.asyncio
async def test_balance_is_zero_for_unknown_account(uow_factory):
    async with await uow_factory() as uow:
        assert await uow.credits.get_balance("nobody") == 0


@pytest.mark.asyncio
async def test_credit_creates_and_accumulates_balance(uow_factory, fund):
    assert await fund("user-1", 5) == 5
    assert await fund("user-1", 3) == 8

    async with await uow_factory() as uow:
        assert await uow.credits.get_balance("user-1") == 8


@pytest.mark.asyncio
async def test_try_debit_decreases_balance_by_exact_amount(uow_factory, fund):
    await fund("user-1", 10)

    async with await uow_factory() as uow:
        balance = await uow.credits.try_debit("user-1", 4, CreditReason.IMAGE_GENERATION)

    assert balance == 6
    async with await uow_factory() as uow:
        assert await uow.credits.get_balance("user-1") == 6


@pytest.mark.asyncio
async def test_try_debit_can_spend_entire_balance(uow_factory, fund):
    await fund("user-1", 3)

    async with await uow_factory() as uow:
        assert await uow.credits.try_debit("user-1", 3, CreditReason.PACK_GENERATION) == 0


@pytest.mark.asyncio
async def test_try_debit_insufficient_leaves_balance_unchanged(uow_factory, fund):
    await fund("user-1", 2)

    with pytest.raises(InsufficientCredit) as exc_info:
        async with await uow_factory() as uow:
            await uow.credits.try_debit("user-1", 3, CreditReason.PACK_GENERATION)

    assert exc_info.value.required == 3
    assert exc_info.value.available == 2
    assert str(exc_info.value) == "Not enough credits"

    async with await uow_factory() as uow:
        assert await uow.credits.get_balance("user-1") == 2


@pytest.mark.asyncio
async def test_try_debit_without_account_row_is_insufficient(uow_factory):
    with pytest.raises(InsufficientCredit):
        async with await uow_factory() as uow:
            await uow.credits.try_debit("nobody", 1, CreditReason.IMAGE_GENERATION)


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1])
async def test_non_positive_amounts_rejected(uow_factory, fund, amount):
    await fund("user-1", 5)

    async with await uow_factory() as uow:
        with pytest.raises(ValueError):
            await uow.credits.try_debit("user-1", amount, CreditReason.IMAGE_GENERATION)
        with pytest.raises(ValueError):
            await uow.credits.credit("user-1", amount)


@pytest.mark.asyncio
async def test_debit_rolled_back_with_its_unit_of_work(uow_factory, fund):
    await fund("user-1", 5)

    with pytest.raises(RuntimeError):
        async with await uow_factory() as uow:
            await uow.credits.try_debit("user-1", 5, CreditReason.IMAGE_GENERATION)
            raise RuntimeError("dispatch failed")

    async with await uow_factory() as uow:
        assert await uow.credits.get_balance("user-1") == 5


@pytest.mark.asyncio
async def test_concurrent_debits_only_one_succeeds(uow_factory, fund):
    """Two debits of 1 against a balance of 1: exactly one wins."""
    await fund("user-1", 1)

    async def debit():
        async with await uow_factory() as uow:
            return await uow.credits.try_debit("user-1", 1, CreditReason.IMAGE_GENERATION)

    results = await asyncio.gather(debit(), debit(), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, InsufficientCredit)]
    assert successes == [0]
    assert len(failures) == 1

    async with await uow_factory() as uow:
        assert await uow.credits.get_balance("user-1") == 0


@pytest.mark.asyncio
async def test_many_concurrent_debits_never_overdraw(uow_factory, fund):
    await fund("user-1", 5)

    async def debit():
        async with await uow_factory() as uow:
            return await uow.credits.try_debit("user-1", 2, CreditReason.IMAGE_GENERATION)

    results = await asyncio.gather(*(debit() for _ in range(6)), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, BaseException)]
    assert len(successes) == 2
    assert all(isinstance(r, InsufficientCredit) for r in results if isinstance(r, BaseException))

    async with await uow_factory() as uow:
        assert await uow.credits.get_balance("user-1") == 1


@pytest.mark.asyncio
async def test_transactions_record_each_change(uow_factory, fund):
    await fund("user-1", 10)

    async with await uow_factory() as uow:
        await uow.credits.try_debit(
            "user-1", 3, CreditReason.PACK_GENERATION, reference="pack-123"
        )

    async with await uow_factory() as uow:
        transactions = await uow.credits.list_transactions("user-1")

    by_reason = {tx.reason: tx for tx in transactions}
    assert by_reason[CreditReason.TOP_UP].delta == 10
    assert by_reason[CreditReason.TOP_UP].balance_after == 10
    assert by_reason[CreditReason.PACK_GENERATION].delta == -3
    assert by_reason[CreditReason.PACK_GENERATION].balance_after == 7
    assert by_reason[CreditReason.PACK_GENERATION].reference == "pack-123"
