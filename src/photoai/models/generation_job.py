"""GenerationJob entity - one requested image."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from photoai.core.timezone import utc_now
from photoai.models.status import InvalidStateTransition, JobStatus


class GenerationJob(SQLModel, table=True):
    """GenerationJob tracks a single image generation submitted to the provider.

    Every row carries exactly one provider request id, unique across the system,
    which correlates asynchronous completion callbacks back to the row.
    """

    __tablename__ = "output_images"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    model_id: UUID = Field(foreign_key="models.id", index=True)
    pack_id: Optional[UUID] = Field(default=None, foreign_key="packs.id")
    prompt: str
    provider_request_id: str = Field(max_length=255, unique=True, index=True)
    image_url: str = Field(default="")  # Empty until completion
    status: JobStatus = Field(default=JobStatus.PENDING, index=True)
    failure_reason: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True), index=True
    )
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    last_polled_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def mark_complete(self, image_url: str) -> None:
        """Transition from pending to complete.

        Args:
            image_url: URL of the generated image

        Raises:
            InvalidStateTransition: If job is already terminal
            ValueError: If image_url is empty
        """
        if self.status != JobStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark complete from {self.status.value}. Job must be in pending state."
            )
        if not image_url:
            raise ValueError("image_url is required")
        self.image_url = image_url
        self.status = JobStatus.COMPLETE
        self.updated_at = utc_now()

    def mark_failed(self, reason: str) -> None:
        """Transition from pending to failed.

        Raises:
            InvalidStateTransition: If job is already terminal
        """
        if self.status != JobStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.status.value}."
            )
        self.failure_reason = reason[:1000]
        self.status = JobStatus.FAILED
        self.updated_at = utc_now()
