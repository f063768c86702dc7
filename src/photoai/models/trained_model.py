"""TrainedModel entity - a user's personalization model trained by the provider."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from photoai.core.timezone import utc_now
from photoai.models.status import InvalidStateTransition, JobStatus


class ModelType(str, Enum):
    MAN = "man"
    WOMAN = "woman"
    OTHERS = "others"


class Ethnicity(str, Enum):
    WHITE = "white"
    BLACK = "black"
    ASIAN_AMERICAN = "asian_american"
    EAST_ASIAN = "east_asian"
    SOUTH_EAST_ASIAN = "south_east_asian"
    SOUTH_ASIAN = "south_asian"
    MIDDLE_EASTERN = "middle_eastern"
    PACIFIC = "pacific"
    HISPANIC = "hispanic"


class EyeColor(str, Enum):
    BROWN = "brown"
    BLUE = "blue"
    HAZEL = "hazel"
    GRAY = "gray"


class TrainedModel(SQLModel, table=True):
    """TrainedModel tracks a training submission and, once trained, its weights."""

    __tablename__ = "models"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(max_length=255, index=True)
    name: str = Field(max_length=255)
    type: ModelType
    age: int = Field(ge=0)
    ethnicity: Ethnicity
    eye_color: EyeColor
    bald: bool = Field(default=False)
    zip_url: str
    provider_request_id: str = Field(max_length=255, unique=True, index=True)
    tensor_path: Optional[str] = Field(default=None)  # None until training completes
    training_status: JobStatus = Field(default=JobStatus.PENDING, index=True)
    failure_reason: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True), index=True
    )
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    last_polled_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    @property
    def is_trained(self) -> bool:
        return self.training_status == JobStatus.COMPLETE and bool(self.tensor_path)

    def mark_complete(self, tensor_path: str) -> None:
        """Transition from pending to complete and record the trained weights.

        Raises:
            InvalidStateTransition: If training is already terminal
            ValueError: If tensor_path is empty
        """
        if self.training_status != JobStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark complete from {self.training_status.value}. "
                "Model must be in pending state."
            )
        if not tensor_path:
            raise ValueError("tensor_path is required")
        self.tensor_path = tensor_path
        self.training_status = JobStatus.COMPLETE
        self.updated_at = utc_now()

    def mark_failed(self, reason: str) -> None:
        """Transition from pending to failed.

        Raises:
            InvalidStateTransition: If training is already terminal
        """
        if self.training_status != JobStatus.PENDING:
            raise InvalidStateTransition(
                f"Cannot mark failed from terminal state {self.training_status.value}."
            )
        self.failure_reason = reason[:1000]
        self.training_status = JobStatus.FAILED
        self.updated_at = utc_now()
