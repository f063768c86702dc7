"""TrainedModel repository.

Provides data access methods for TrainedModel entities, keyed by internal id and
by provider request id.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import nulls_first, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from photoai.models.status import JobStatus
from photoai.models.trained_model import TrainedModel


class TrainedModelRepository:
    """Repository for TrainedModel entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, model: TrainedModel) -> TrainedModel:
        """Persist new trained model to database.

        Args:
            model: TrainedModel entity to persist

        Returns:
            Persisted model with generated ID
        """
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_by_id(self, model_id: UUID) -> TrainedModel | None:
        result = await self.session.execute(
            select(TrainedModel).where(TrainedModel.id == model_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def get_owned(self, model_id: UUID, user_id: str) -> TrainedModel | None:
        """Retrieve a model only if it belongs to the given account.

        Args:
            model_id: Model's unique identifier
            user_id: Requesting account

        Returns:
            TrainedModel if found and owned by user_id, None otherwise
        """
        result = await self.session.execute(
            select(TrainedModel).where(
                TrainedModel.id == model_id,  # type: ignore[arg-type]
                TrainedModel.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        return result.scalar_one_or_none()

    async def get_by_request_id(
        self, request_id: str, for_update: bool = False
    ) -> TrainedModel | None:
        """Retrieve model by provider request id.

        Args:
            request_id: Provider job handle
            for_update: Lock the row until the transaction ends (serializes
                duplicate completion callbacks)

        Returns:
            TrainedModel if found, None otherwise
        """
        stmt = select(TrainedModel).where(
            TrainedModel.provider_request_id == request_id  # type: ignore[arg-type]
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_account(
        self,
        user_id: str,
        include_failed: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[TrainedModel]:
        """Retrieve an account's models, newest first.

        Args:
            user_id: Owning account
            include_failed: Also return models whose training failed
            limit: Maximum number of models to return (default: 100)
            offset: Number of models to skip (default: 0)
        """
        stmt = select(TrainedModel).where(TrainedModel.user_id == user_id)  # type: ignore[arg-type]
        if not include_failed:
            stmt = stmt.where(TrainedModel.training_status != JobStatus.FAILED)  # type: ignore[arg-type]
        result = await self.session.execute(
            stmt.order_by(TrainedModel.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        model_id: UUID,
        status: JobStatus,
        result_url: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Apply a terminal transition to a pending model.

        Args:
            model_id: Model's unique identifier
            status: Target status (complete or failed)
            result_url: Trained weights location (required for complete)
            reason: Failure description (used for failed)

        Returns:
            True if the transition was applied, False if the model is missing or
            already terminal
        """
        result = await self.session.execute(
            select(TrainedModel)
            .where(TrainedModel.id == model_id)  # type: ignore[arg-type]
            .with_for_update()
        )
        model = result.scalar_one_or_none()
        if model is None or model.training_status.is_terminal:
            return False

        if status == JobStatus.COMPLETE:
            model.mark_complete(result_url or "")
        elif status == JobStatus.FAILED:
            model.mark_failed(reason or "unknown error")
        else:
            raise ValueError(f"Cannot update model to non-terminal status {status.value}")

        self.session.add(model)
        await self.session.flush()
        return True

    async def get_stale_pending(self, older_than: datetime, limit: int = 50) -> list[TrainedModel]:
        """Retrieve models still training that were submitted before a cutoff.

        Returns:
            Never-polled models first, then least recently polled, then oldest
        """
        result = await self.session.execute(
            select(TrainedModel)
            .where(
                TrainedModel.training_status == JobStatus.PENDING,  # type: ignore[arg-type]
                TrainedModel.created_at < older_than,  # type: ignore[arg-type]
            )
            .order_by(
                nulls_first(TrainedModel.last_polled_at.asc()),  # type: ignore[union-attr]
                TrainedModel.created_at.asc(),  # type: ignore[attr-defined]
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_polled(self, model_ids: list[UUID], polled_at: datetime) -> None:
        """Stamp last_polled_at on models handed to the reconcile sweeper."""
        if not model_ids:
            return
        await self.session.execute(
            update(TrainedModel)
            .where(TrainedModel.id.in_(model_ids))  # type: ignore[attr-defined]
            .values(last_polled_at=polled_at)
            .execution_options(synchronize_session=False)
        )
