"""GenerationOrchestrator tests.

Tests focus on the credit/dispatch/persist contract:
- No provider call without sufficient credit
- A debit is durable only together with every row it paid for
- Failed or partial dispatches are cancelled and leave no trace
"""

from uuid import uuid4

import pytest

from photoai.models.generation_job import GenerationJob
from photoai.models.status import JobStatus
from photoai.models.trained_model import EyeColor, Ethnicity, ModelType, TrainedModel
from photoai.services.exceptions import (
    DispatchResultMismatch,
    InsufficientCredit,
    ModelNotFound,
    PersistenceError,
    ProviderRejected,
    ProviderUnavailable,
    ValidationError,
)
from photoai.services.provider.gateway import JobKind, ModelAttributes

ATTRIBUTES = ModelAttributes(
    type=ModelType.MAN,
    age=34,
    ethnicity=Ethnicity.SOUTH_ASIAN,
    eye_color=EyeColor.BROWN,
    bald=True,
)


async def _balance(uow_factory, user_id: str = "user-1") -> int:
    async with await uow_factory() as uow:
        return await uow.credits.get_balance(user_id)


async def _jobs(uow_factory, user_id: str = "user-1"):
    async with await uow_factory() as uow:
        return await uow.images.list_for_account(user_id, include_failed=True)


# Training


@pytest.mark.asyncio
async def test_submit_training_records_pending_model(orchestrator, uow_factory, gateway):
    model_id = await orchestrator.submit_training(
        "user-1", "Alex", "https://assets.example.com/alex.zip", ATTRIBUTES
    )

    async with await uow_factory() as uow:
        model = await uow.models.get_by_id(model_id)

    assert model is not None
    assert model.user_id == "user-1"
    assert model.training_status == JobStatus.PENDING
    assert model.tensor_path is None
    assert model.bald is True
    assert model.provider_request_id == gateway.training_submissions[0][2]


@pytest.mark.asyncio
async def test_submit_training_is_free(orchestrator, uow_factory):
    await orchestrator.submit_training(
        "user-1", "Alex", "https://assets.example.com/alex.zip", ATTRIBUTES
    )
    assert await _balance(uow_factory) == 0


@pytest.mark.asyncio
async def test_submit_training_provider_failure_persists_nothing(
    orchestrator, uow_factory, gateway, provider_down
):
    gateway.training_error = provider_down

    with pytest.raises(ProviderUnavailable):
        await orchestrator.submit_training(
            "user-1", "Alex", "https://assets.example.com/alex.zip", ATTRIBUTES
        )

    async with await uow_factory() as uow:
        assert await uow.models.list_for_account("user-1", include_failed=True) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("name,zip_url", [("   ", "https://a/b.zip"), ("Alex", " ")])
async def test_submit_training_validates_before_dispatch(orchestrator, gateway, name, zip_url):
    with pytest.raises(ValidationError):
        await orchestrator.submit_training("user-1", name, zip_url, ATTRIBUTES)
    assert gateway.calls == 0


@pytest.mark.asyncio
async def test_submit_training_unpersistable_row_cancels_submission(
    orchestrator, uow_factory, gateway
):
    # Occupies the handle the fake provider hands out first
    async with await uow_factory() as uow:
        await uow.models.add(
            TrainedModel(
                user_id="user-2",
                name="Existing",
                type=ModelType.WOMAN,
                age=40,
                ethnicity=Ethnicity.WHITE,
                eye_color=EyeColor.GRAY,
                zip_url="https://assets.example.com/existing.zip",
                provider_request_id="train-1",
            )
        )

    with pytest.raises(PersistenceError):
        await orchestrator.submit_training(
            "user-1", "Alex", "https://assets.example.com/alex.zip", ATTRIBUTES
        )

    async with await uow_factory() as uow:
        assert await uow.models.list_for_account("user-1", include_failed=True) == []
    assert gateway.cancelled == [("train-1", JobKind.TRAINING)]


# Single image


@pytest.mark.asyncio
async def test_generate_image_debits_and_records_job(
    orchestrator, uow_factory, gateway, fund, make_model
):
    model = await make_model()
    await fund("user-1", 3)

    image_id = await orchestrator.generate_image("user-1", model.id, "portrait in the rain")

    assert await _balance(uow_factory) == 2
    jobs = await _jobs(uow_factory)
    assert [job.id for job in jobs] == [image_id]
    assert jobs[0].status == JobStatus.PENDING
    assert jobs[0].image_url == ""
    assert jobs[0].pack_id is None
    prompt, artifact, request_id = gateway.image_submissions[0]
    assert prompt == "portrait in the rain"
    assert artifact == model.tensor_path
    assert jobs[0].provider_request_id == request_id


@pytest.mark.asyncio
async def test_generate_image_with_zero_balance(orchestrator, uow_factory, gateway, make_model):
    model = await make_model()

    with pytest.raises(InsufficientCredit):
        await orchestrator.generate_image("user-1", model.id, "portrait")

    assert gateway.calls == 0
    assert await _jobs(uow_factory) == []


@pytest.mark.asyncio
async def test_generate_image_provider_failure_keeps_credit(
    orchestrator, uow_factory, gateway, fund, make_model, provider_down
):
    model = await make_model()
    await fund("user-1", 1)
    gateway.fail_prompts["portrait"] = provider_down

    with pytest.raises(ProviderUnavailable):
        await orchestrator.generate_image("user-1", model.id, "portrait")

    assert await _balance(uow_factory) == 1
    assert await _jobs(uow_factory) == []


@pytest.mark.asyncio
async def test_generate_image_unpersistable_row_keeps_credit_and_cancels(
    orchestrator, uow_factory, gateway, fund, make_model
):
    model = await make_model()
    await fund("user-1", 2)
    # Occupies the handle the fake provider hands out first
    async with await uow_factory() as uow:
        await uow.images.add_many(
            [
                GenerationJob(
                    user_id="user-2",
                    model_id=model.id,
                    prompt="earlier",
                    provider_request_id="pred-1",
                )
            ]
        )

    with pytest.raises(PersistenceError):
        await orchestrator.generate_image("user-1", model.id, "portrait")

    assert await _balance(uow_factory) == 2
    assert await _jobs(uow_factory) == []
    assert gateway.cancelled == [("pred-1", JobKind.IMAGE)]


@pytest.mark.asyncio
async def test_generate_image_unknown_model(orchestrator, gateway, fund):
    await fund("user-1", 1)

    with pytest.raises(ModelNotFound):
        await orchestrator.generate_image("user-1", uuid4(), "portrait")
    assert gateway.calls == 0


@pytest.mark.asyncio
async def test_generate_image_with_someone_elses_model(orchestrator, gateway, fund, make_model):
    foreign = await make_model("user-2")
    await fund("user-1", 1)

    with pytest.raises(ModelNotFound):
        await orchestrator.generate_image("user-1", foreign.id, "portrait")
    assert gateway.calls == 0


@pytest.mark.asyncio
async def test_generate_image_with_untrained_model(
    orchestrator, uow_factory, gateway, fund, make_model
):
    model = await make_model(trained=False)
    await fund("user-1", 1)

    with pytest.raises(ModelNotFound, match="not trained"):
        await orchestrator.generate_image("user-1", model.id, "portrait")

    assert gateway.calls == 0
    assert await _balance(uow_factory) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("prompt", ["", "   ", "x" * 1001])
async def test_generate_image_rejects_bad_prompt(orchestrator, gateway, fund, make_model, prompt):
    model = await make_model()
    await fund("user-1", 1)

    with pytest.raises(ValidationError):
        await orchestrator.generate_image("user-1", model.id, prompt)
    assert gateway.calls == 0


# Packs


@pytest.mark.asyncio
async def test_pack_with_insufficient_credit(
    orchestrator, uow_factory, gateway, fund, make_model, make_pack
):
    """Pack of 3 prompts with balance 2: nothing dispatched, balance stays 2."""
    model = await make_model()
    pack = await make_pack(["beach", "office", "mountain"])
    await fund("user-1", 2)

    with pytest.raises(InsufficientCredit):
        await orchestrator.generate_pack("user-1", pack.id, model.id)

    assert gateway.calls == 0
    assert await _jobs(uow_factory) == []
    assert await _balance(uow_factory) == 2


@pytest.mark.asyncio
async def test_pack_with_enough_credit(
    orchestrator, uow_factory, gateway, fund, make_model, make_pack
):
    """Pack of 3 prompts with balance 5: three jobs with distinct handles, balance 2."""
    model = await make_model()
    pack = await make_pack(["beach", "office", "mountain"])
    await fund("user-1", 5)

    image_ids = await orchestrator.generate_pack("user-1", pack.id, model.id)

    assert len(image_ids) == 3
    jobs = await _jobs(uow_factory)
    assert {job.id for job in jobs} == set(image_ids)
    assert len({job.provider_request_id for job in jobs}) == 3
    assert {job.prompt for job in jobs} == {"beach", "office", "mountain"}
    assert all(job.pack_id == pack.id for job in jobs)
    assert await _balance(uow_factory) == 2

    async with await uow_factory() as uow:
        transactions = await uow.credits.list_transactions("user-1")
    debits = [tx for tx in transactions if tx.delta < 0]
    assert len(debits) == 1
    assert debits[0].delta == -3


@pytest.mark.asyncio
async def test_pack_partial_provider_failure_rolls_back_and_cancels(
    orchestrator, uow_factory, gateway, fund, make_model, make_pack
):
    model = await make_model()
    pack = await make_pack(["beach", "office", "mountain"])
    await fund("user-1", 5)
    gateway.fail_prompts["office"] = ProviderRejected("Content policy violation: nsfw")

    with pytest.raises(ProviderRejected):
        await orchestrator.generate_pack("user-1", pack.id, model.id)

    assert await _balance(uow_factory) == 5
    assert await _jobs(uow_factory) == []
    accepted = {request_id for _, _, request_id in gateway.image_submissions}
    assert len(accepted) == 2
    assert {request_id for request_id, _ in gateway.cancelled} == accepted
    assert all(kind == JobKind.IMAGE for _, kind in gateway.cancelled)


@pytest.mark.asyncio
async def test_pack_missing_handle_is_a_mismatch(
    orchestrator, uow_factory, gateway, fund, make_model, make_pack
):
    model = await make_model()
    pack = await make_pack(["beach", "office"])
    await fund("user-1", 5)
    gateway.blank_prompts.add("beach")

    with pytest.raises(DispatchResultMismatch):
        await orchestrator.generate_pack("user-1", pack.id, model.id)

    assert await _balance(uow_factory) == 5
    assert await _jobs(uow_factory) == []
    assert len(gateway.cancelled) == 1


@pytest.mark.asyncio
async def test_empty_pack_has_no_side_effects(
    orchestrator, uow_factory, gateway, fund, make_model, make_pack
):
    model = await make_model()
    pack = await make_pack([])
    await fund("user-1", 5)

    assert await orchestrator.generate_pack("user-1", pack.id, model.id) == []
    assert await orchestrator.generate_pack("user-1", uuid4(), model.id) == []

    assert gateway.calls == 0
    assert await _balance(uow_factory) == 5


@pytest.mark.asyncio
async def test_pack_requires_trained_model(
    orchestrator, uow_factory, gateway, fund, make_model, make_pack
):
    model = await make_model(trained=False)
    pack = await make_pack(["beach"])
    await fund("user-1", 5)

    with pytest.raises(ModelNotFound):
        await orchestrator.generate_pack("user-1", pack.id, model.id)

    assert gateway.calls == 0
    assert await _balance(uow_factory) == 5


@pytest.mark.asyncio
async def test_concurrent_requests_cannot_overspend(
    orchestrator, uow_factory, gateway, fund, make_model
):
    import asyncio

    model = await make_model()
    await fund("user-1", 1)

    results = await asyncio.gather(
        orchestrator.generate_image("user-1", model.id, "first"),
        orchestrator.generate_image("user-1", model.id, "second"),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, InsufficientCredit)) == 1
    assert len(await _jobs(uow_factory)) == 1
    assert len(gateway.image_submissions) == 1
    assert await _balance(uow_factory) == 0
