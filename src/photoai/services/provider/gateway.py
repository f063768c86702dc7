"""Provider gateway contract and value types.

The provider is an opaque asynchronous service: a submission only enqueues work and
returns a handle; the outcome arrives later (webhook) or can be polled.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Union

from photoai.models.trained_model import EyeColor, Ethnicity, ModelType


class JobKind(str, Enum):
    """Kind of provider job a handle refers to."""

    IMAGE = "image"
    TRAINING = "training"


@dataclass(frozen=True)
class JobHandle:
    """Provider's identifier for an accepted submission."""

    request_id: str
    status_url: Optional[str] = None


@dataclass(frozen=True)
class ModelAttributes:
    """Descriptive tags of the person a model is trained on, passed to the provider."""

    type: ModelType
    age: int
    ethnicity: Ethnicity
    eye_color: EyeColor
    bald: bool


@dataclass(frozen=True)
class Succeeded:
    result_url: str


@dataclass(frozen=True)
class Failed:
    reason: str


ProviderOutcome = Union[Succeeded, Failed]


class ProviderGateway(Protocol):
    """Submission side of the external generative provider.

    All methods raise ProviderUnavailable or ProviderRejected on failure.
    """

    async def submit_training(
        self, asset_url: str, model_name: str, attributes: ModelAttributes
    ) -> JobHandle: ...

    async def submit_image_generation(self, prompt: str, model_artifact_path: str) -> JobHandle: ...

    async def cancel(self, request_id: str, kind: JobKind) -> None: ...

    async def fetch_outcome(self, request_id: str, kind: JobKind) -> Optional[ProviderOutcome]: ...
