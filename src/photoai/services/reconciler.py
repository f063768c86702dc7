"""Completion reconciler: applies provider outcomes to pending jobs exactly once."""

from enum import Enum

import structlog

from photoai.models.status import JobStatus
from photoai.services.provider.gateway import Failed, JobKind, ProviderOutcome, Succeeded
from photoai.uow import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


class ReconcileResult(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNKNOWN = "unknown"


class CompletionReconciler:
    """Correlates a provider callback to its row by handle and records the outcome.

    The row is loaded FOR UPDATE, so concurrent deliveries of the same outcome
    serialize and only the first one performs the pending -> terminal transition.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory):
        self._uow_factory = uow_factory

    async def on_provider_callback(
        self,
        request_id: str,
        outcome: ProviderOutcome,
        kind: JobKind = JobKind.IMAGE,
    ) -> ReconcileResult:
        """Apply an outcome reported by the provider.

        Args:
            request_id: Provider job handle
            outcome: Succeeded(result_url) or Failed(reason)
            kind: Whether the handle belongs to an image or a training

        Returns:
            APPLIED on transition, DUPLICATE if the row is already terminal,
            UNKNOWN if no row carries this handle
        """
        if isinstance(outcome, Succeeded) and not outcome.result_url.strip():
            outcome = Failed("Provider returned no output")

        async with await self._uow_factory() as uow:
            repo = uow.models if kind == JobKind.TRAINING else uow.images
            row = await repo.get_by_request_id(request_id, for_update=True)

            if row is None:
                # Orphaned submission (e.g. request rolled back after dispatch)
                logger.warning("webhook.unknown_handle", request_id=request_id, kind=kind.value)
                return ReconcileResult.UNKNOWN

            if isinstance(outcome, Succeeded):
                applied = await repo.update_status(
                    row.id, JobStatus.COMPLETE, result_url=outcome.result_url
                )
            else:
                applied = await repo.update_status(row.id, JobStatus.FAILED, reason=outcome.reason)

        if not applied:
            logger.info(
                "webhook.duplicate_outcome", request_id=request_id, kind=kind.value, id=str(row.id)
            )
            return ReconcileResult.DUPLICATE

        logger.info(
            "webhook.outcome_applied",
            request_id=request_id,
            kind=kind.value,
            id=str(row.id),
            succeeded=isinstance(outcome, Succeeded),
        )
        return ReconcileResult.APPLIED
