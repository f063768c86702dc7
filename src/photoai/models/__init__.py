"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from photoai.models.credit import CreditReason, CreditTransaction, UserCredit
from photoai.models.generation_job import GenerationJob
from photoai.models.pack import Pack, PackPrompt
from photoai.models.status import InvalidStateTransition, JobStatus
from photoai.models.trained_model import EyeColor, Ethnicity, ModelType, TrainedModel

__all__ = [
    "CreditReason",
    "CreditTransaction",
    "UserCredit",
    "GenerationJob",
    "Pack",
    "PackPrompt",
    "InvalidStateTransition",
    "JobStatus",
    "EyeColor",
    "Ethnicity",
    "ModelType",
    "TrainedModel",
]
