"""GenerationJob repository.

Provides data access methods for GenerationJob entities (generated images),
including the caller-scoped listing used by the bulk read endpoint.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import nulls_first, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from photoai.models.generation_job import GenerationJob
from photoai.models.status import JobStatus


class GenerationJobRepository:
    """Repository for GenerationJob entities.

    Methods:
    - add_many: Persist a batch of pending jobs in one flush
    - get_by_id / get_owned / get_by_request_id: Point lookups
    - list_for_account: Paginated, caller-scoped listing (failed rows hidden)
    - update_status: Single pending -> terminal transition
    - get_stale_pending: Pending jobs older than a cutoff (sweeper input)
    - mark_polled: Record when the sweeper last asked the provider about jobs
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add_many(self, jobs: list[GenerationJob]) -> list[GenerationJob]:
        """Persist new jobs to database in a single flush.

        Args:
            jobs: GenerationJob entities to persist

        Returns:
            Persisted jobs with generated IDs

        Raises:
            IntegrityError: If a provider request id is already recorded
        """
        self.session.add_all(jobs)
        await self.session.flush()
        return jobs

    async def get_by_id(self, job_id: UUID) -> GenerationJob | None:
        result = await self.session.execute(
            select(GenerationJob).where(GenerationJob.id == job_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_owned(self, job_id: UUID, user_id: str) -> GenerationJob | None:
        result = await self.session.execute(
            select(GenerationJob).where(
                GenerationJob.id == job_id,  # type: ignore[arg-type]
                GenerationJob.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def get_by_request_id(
        self, request_id: str, for_update: bool = False
    ) -> GenerationJob | None:
        """Retrieve job by provider request id.

        Args:
            request_id: Provider job handle
            for_update: Lock the row until the transaction ends

        Returns:
            GenerationJob if found, None otherwise
        """
        stmt = select(GenerationJob).where(
            GenerationJob.provider_request_id == request_id  # type: ignore[arg-type]
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_account(
        self,
        user_id: str,
        ids: list[UUID] | None = None,
        limit: int = 100,
        offset: int = 0,
        include_failed: bool = False,
    ) -> list[GenerationJob]:
        """Retrieve an account's images with pagination.

        Query explanation:
        - WHERE user_id = :user_id: Rows are always scoped to the caller
        - AND id IN (:ids): Only when ids is given (None means no id filter)
        - AND status != 'failed': Unless include_failed
        - ORDER BY created_at DESC, LIMIT/OFFSET

        Args:
            user_id: Owning account
            ids: Optional id filter
            limit: Maximum number of rows to return (default: 100)
            offset: Number of rows to skip (default: 0)
            include_failed: Also return failed rows

        Returns:
            List of jobs ordered by creation time (newest first)
        """
        stmt = select(GenerationJob).where(GenerationJob.user_id == user_id)  # type: ignore[arg-type]
        if ids is not None:
            stmt = stmt.where(GenerationJob.id.in_(ids))  # type: ignore[attr-defined]
        if not include_failed:
            stmt = stmt.where(GenerationJob.status != JobStatus.FAILED)  # type: ignore[arg-type]

        result = await self.session.execute(
            stmt.order_by(GenerationJob.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        job_id: UUID,
        status: JobStatus,
        result_url: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Apply a terminal transition to a pending job.

        The row is locked (FOR UPDATE) before the status check so concurrent
        deliveries of the same outcome apply at most once.

        Args:
            job_id: Job's unique identifier
            status: Target status (complete or failed)
            result_url: Generated image URL (required for complete)
            reason: Failure description (used for failed)

        Returns:
            True if the transition was applied, False if the job is missing or
            already terminal
        """
        result = await self.session.execute(
            select(GenerationJob)
            .where(GenerationJob.id == job_id)  # type: ignore[arg-type]
            .with_for_update()
        )
        job = result.scalar_one_or_none()
        if job is None or job.status.is_terminal:
            return False

        if status == JobStatus.COMPLETE:
            job.mark_complete(result_url or "")
        elif status == JobStatus.FAILED:
            job.mark_failed(reason or "unknown error")
        else:
            raise ValueError(f"Cannot update job to non-terminal status {status.value}")

        self.session.add(job)
        await self.session.flush()
        return True

    async def get_stale_pending(
        self, older_than: datetime, limit: int = 50
    ) -> list[GenerationJob]:
        """Retrieve pending jobs submitted before a cutoff.

        Never-polled jobs come first, then the least recently polled, then the oldest.
        """
        result = await self.session.execute(
            select(GenerationJob)
            .where(
                GenerationJob.status == JobStatus.PENDING,  # type: ignore[arg-type]
                GenerationJob.created_at < older_than,  # type: ignore[arg-type]
            )
            .order_by(
                nulls_first(GenerationJob.last_polled_at.asc()),  # type: ignore[union-attr]
                GenerationJob.created_at.asc(),  # type: ignore[attr-defined]
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_polled(self, job_ids: list[UUID], polled_at: datetime) -> None:
        """Stamp last_polled_at on jobs handed to the reconcile sweeper."""
        if not job_ids:
            return
        await self.session.execute(
            update(GenerationJob)
            .where(GenerationJob.id.in_(job_ids))  # type: ignore[attr-defined]
            .values(last_polled_at=polled_at)
            .execution_options(synchronize_session=False)
        )
