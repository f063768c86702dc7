"""Background workers for async processing tasks."""

from photoai.workers.reconcile_worker import run_reconcile_worker, sweep_stale_jobs

__all__ = [
    "run_reconcile_worker",
    "sweep_stale_jobs",
]
