"""Generation orchestrator: credit-gated dispatch of training and image jobs.

Image requests run in a single unit of work:

1. Resolve the caller's trained model
2. Debit the credits (conditional UPDATE, row stays locked on PostgreSQL)
3. Submit every prompt to the provider concurrently
4. Insert one pending row per accepted submission
5. Commit

Any failure after the debit rolls the transaction back, so a debit is never
durable without the rows it paid for. Submissions already accepted by the
provider when a batch aborts are cancelled best-effort; their late callbacks
are discarded as unknown handles by the reconciler.
"""

import asyncio
import time
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from photoai.core.config import Settings
from photoai.models.credit import CreditReason
from photoai.models.generation_job import GenerationJob
from photoai.models.trained_model import TrainedModel
from photoai.services.exceptions import (
    DispatchResultMismatch,
    ModelNotFound,
    PersistenceError,
    ValidationError,
)
from photoai.services.prompt_validator import validate_prompt
from photoai.services.provider.gateway import (
    JobHandle,
    JobKind,
    ModelAttributes,
    ProviderGateway,
)
from photoai.uow import UnitOfWork, UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class GenerationOrchestrator:
    """Coordinates ledger, provider gateway and job store for every generation request.

    Example:
        orchestrator = GenerationOrchestrator(uow_factory, gateway, settings)
        image_id = await orchestrator.generate_image(user_id, model_id, "portrait, studio light")
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        gateway: ProviderGateway,
        settings: Settings,
    ):
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._price_per_image = settings.image_generation_credits

    async def submit_training(
        self, user_id: str, name: str, zip_url: str, attributes: ModelAttributes
    ) -> UUID:
        """Start training a personal model. Training is not charged.

        Args:
            user_id: Caller's account
            name: Model display name
            zip_url: URL of the archive with training photos
            attributes: Subject description passed to the provider

        Returns:
            ID of the pending TrainedModel

        Raises:
            ValidationError: Empty name or archive URL, negative age
            ProviderUnavailable / ProviderRejected: Submission failed, nothing persisted
            PersistenceError: Row could not be written (submission is cancelled)
        """
        name = name.strip()
        if not name:
            raise ValidationError("Model name cannot be empty")
        if not zip_url.strip():
            raise ValidationError("zipUrl cannot be empty")
        if attributes.age < 0:
            raise ValidationError(f"Age must not be negative (got {attributes.age})")

        handle = await self._gateway.submit_training(zip_url, name, attributes)
        if not handle.request_id.strip():
            raise DispatchResultMismatch("Training submission returned no provider handle")

        model = TrainedModel(
            user_id=user_id,
            name=name,
            type=attributes.type,
            age=attributes.age,
            ethnicity=attributes.ethnicity,
            eye_color=attributes.eye_color,
            bald=attributes.bald,
            zip_url=zip_url,
            provider_request_id=handle.request_id,
        )

        try:
            async with await self._uow_factory() as uow:
                await uow.models.add(model)
        except SQLAlchemyError as e:
            await self._cancel_all([handle], JobKind.TRAINING)
            raise PersistenceError(f"Could not persist model: {e}") from e

        logger.info(
            "generation.training.dispatched",
            user_id=user_id,
            model_id=str(model.id),
            request_id=handle.request_id,
        )
        return model.id

    async def generate_image(self, user_id: str, model_id: UUID, prompt: str) -> UUID:
        """Generate a single image with the caller's trained model.

        Raises:
            ValidationError: Empty or oversized prompt
            ModelNotFound: Model missing, owned by someone else, or not trained yet
            InsufficientCredit: Balance below the image price (provider not called)
            ProviderUnavailable / ProviderRejected: Submission failed, nothing debited
            DispatchResultMismatch / PersistenceError: Nothing debited
        """
        prompt = validate_prompt(prompt)
        job_ids = await self._generate(
            user_id,
            model_id,
            [prompt],
            pack_id=None,
            reason=CreditReason.IMAGE_GENERATION,
        )
        return job_ids[0]

    async def generate_pack(self, user_id: str, pack_id: UUID, model_id: UUID) -> list[UUID]:
        """Generate one image per prompt of a pack, charged as a single debit.

        An unknown or empty pack has no prompts and yields [] without side effects.

        Returns:
            Job IDs in prompt order
        """
        async with await self._uow_factory() as uow:
            await self._resolve_model(uow, user_id, model_id)
            prompts = [pack_prompt.prompt for pack_prompt in await uow.packs.get_prompts(pack_id)]

        if not prompts:
            logger.info("generation.pack.empty", user_id=user_id, pack_id=str(pack_id))
            return []

        return await self._generate(
            user_id,
            model_id,
            prompts,
            pack_id=pack_id,
            reason=CreditReason.PACK_GENERATION,
        )

    async def _generate(
        self,
        user_id: str,
        model_id: UUID,
        prompts: list[str],
        pack_id: UUID | None,
        reason: CreditReason,
    ) -> list[UUID]:
        start_time = time.time()
        cost = len(prompts) * self._price_per_image
        handles: list[JobHandle] = []

        try:
            async with await self._uow_factory() as uow:
                model = await self._resolve_model(uow, user_id, model_id)
                balance = await uow.credits.try_debit(
                    user_id,
                    cost,
                    reason,
                    reference=str(pack_id) if pack_id else str(model_id),
                )

                handles = await self._dispatch(prompts, model.tensor_path or "")

                jobs = [
                    GenerationJob(
                        user_id=user_id,
                        model_id=model.id,
                        pack_id=pack_id,
                        prompt=prompt,
                        provider_request_id=handle.request_id,
                    )
                    for prompt, handle in zip(prompts, handles)
                ]
                await uow.images.add_many(jobs)

        except SQLAlchemyError as e:
            # Debit and rows were rolled back; accepted submissions have no owner now
            await self._cancel_all(handles, JobKind.IMAGE)
            raise PersistenceError(f"Could not persist generation jobs: {e}") from e

        logger.info(
            "generation.pack.dispatched" if pack_id else "generation.image.dispatched",
            user_id=user_id,
            model_id=str(model_id),
            pack_id=str(pack_id) if pack_id else None,
            count=len(jobs),
            credits_charged=cost,
            balance_after=balance,
            duration_seconds=round(time.time() - start_time, 3),
        )
        return [job.id for job in jobs]

    async def _resolve_model(self, uow: UnitOfWork, user_id: str, model_id: UUID) -> TrainedModel:
        model = await uow.models.get_owned(model_id, user_id)
        if model is None:
            raise ModelNotFound(model_id)
        if not model.is_trained:
            raise ModelNotFound(model_id, "Model is not trained yet")
        return model

    async def _dispatch(self, prompts: list[str], model_artifact_path: str) -> list[JobHandle]:
        """Submit all prompts concurrently; all-or-nothing from the caller's view.

        Raises:
            ProviderError: First submission error in prompt order
            DispatchResultMismatch: A submission came back without a usable handle
        """
        results = await asyncio.gather(
            *(
                self._gateway.submit_image_generation(prompt, model_artifact_path)
                for prompt in prompts
            ),
            return_exceptions=True,
        )

        accepted = [r for r in results if isinstance(r, JobHandle) and r.request_id.strip()]
        errors = [r for r in results if isinstance(r, BaseException)]

        if errors:
            await self._cancel_all(accepted, JobKind.IMAGE)
            logger.warning(
                "generation.dispatch_failed",
                prompts=len(prompts),
                accepted=len(accepted),
                failed=len(errors),
                error=str(errors[0]),
                error_type=type(errors[0]).__name__,
            )
            raise errors[0]

        request_ids = [handle.request_id for handle in accepted]
        if len(accepted) != len(prompts) or len(set(request_ids)) != len(request_ids):
            await self._cancel_all(accepted, JobKind.IMAGE)
            raise DispatchResultMismatch(
                f"Expected {len(prompts)} distinct provider handles, got {len(set(request_ids))}"
            )

        return accepted

    async def _cancel_all(self, handles: list[JobHandle], kind: JobKind) -> None:
        if not handles:
            return

        results = await asyncio.gather(
            *(self._gateway.cancel(handle.request_id, kind) for handle in handles),
            return_exceptions=True,
        )
        for handle, result in zip(handles, results):
            if isinstance(result, Exception):
                logger.warning(
                    "generation.cancel_failed",
                    request_id=handle.request_id,
                    kind=kind.value,
                    error=str(result),
                )
            else:
                logger.info("generation.cancelled", request_id=handle.request_id, kind=kind.value)
