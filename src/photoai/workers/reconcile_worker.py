"""Reconcile worker for jobs whose completion webhook never arrived.

Polls for image jobs and trained models that are still pending long after
submission, asks the provider for their outcome and feeds terminal outcomes
through the CompletionReconciler, the same path a webhook takes.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from photoai.core.config import Settings
from photoai.core.timezone import utc_now
from photoai.services.exceptions import ProviderError
from photoai.services.provider.gateway import JobKind, ProviderGateway
from photoai.services.reconciler import CompletionReconciler, ReconcileResult
from photoai.uow import UnitOfWorkFactory

logger = structlog.get_logger(__name__)


@dataclass
class SweepResult:
    checked: int = 0
    applied: int = 0
    still_running: int = 0
    errors: int = 0


async def sweep_stale_jobs(
    uow_factory: UnitOfWorkFactory,
    gateway: ProviderGateway,
    settings: Settings,
    now: datetime | None = None,
) -> SweepResult:
    """Poll the provider once for every stale pending job.

    Args:
        uow_factory: Factory for units of work
        gateway: Provider gateway used for polling
        settings: Staleness threshold and batch size
        now: Reference time (defaults to the current UTC time)

    Returns:
        Counters for this sweep
    """
    now = now or utc_now()
    cutoff = now - timedelta(seconds=settings.reconcile_stale_after_seconds)

    async with await uow_factory() as uow:
        stale_images = await uow.images.get_stale_pending(
            cutoff, limit=settings.reconcile_batch_size
        )
        stale_models = await uow.models.get_stale_pending(
            cutoff, limit=settings.reconcile_batch_size
        )
        await uow.images.mark_polled([job.id for job in stale_images], now)
        await uow.models.mark_polled([model.id for model in stale_models], now)

    pending = [(job.provider_request_id, JobKind.IMAGE) for job in stale_images] + [
        (model.provider_request_id, JobKind.TRAINING) for model in stale_models
    ]

    reconciler = CompletionReconciler(uow_factory)
    result = SweepResult()

    for request_id, kind in pending:
        result.checked += 1
        try:
            outcome = await gateway.fetch_outcome(request_id, kind)
        except ProviderError as e:
            result.errors += 1
            logger.warning(
                "reconcile.fetch_failed",
                request_id=request_id,
                kind=kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue

        if outcome is None:
            result.still_running += 1
            continue

        if await reconciler.on_provider_callback(request_id, outcome, kind) == (
            ReconcileResult.APPLIED
        ):
            result.applied += 1

    if result.checked:
        logger.info(
            "reconcile.sweep_completed",
            checked=result.checked,
            applied=result.applied,
            still_running=result.still_running,
            errors=result.errors,
        )
    return result


async def run_reconcile_worker(
    uow_factory: UnitOfWorkFactory,
    gateway: ProviderGateway,
    settings: Settings,
) -> None:
    """Main worker loop for missed-webhook recovery.

    Sweeps every RECONCILE_INTERVAL_SECONDS until cancelled.
    """
    logger.info(
        "worker.started",
        worker="reconcile",
        poll_interval=settings.reconcile_interval_seconds,
        batch_size=settings.reconcile_batch_size,
    )

    try:
        while True:
            try:
                await sweep_stale_jobs(uow_factory, gateway, settings)
                await asyncio.sleep(settings.reconcile_interval_seconds)

            except asyncio.CancelledError:
                raise

            except Exception as e:
                logger.error(
                    "worker.error",
                    worker="reconcile",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )
                # Back off 5 seconds before retrying
                await asyncio.sleep(5)

    except asyncio.CancelledError:
        logger.info("worker.stopped", worker="reconcile")
        raise
