"""Shared request/response models.

Wire format is camelCase; request bodies also accept the snake_case field names.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from photoai.models.generation_job import GenerationJob
from photoai.models.status import JobStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


class ImageDTO(CamelModel):
    """Data Transfer Object for generated images in API responses."""

    id: UUID
    model_id: UUID
    pack_id: UUID | None = None
    prompt: str
    image_url: str = Field(
        default="",
        description="Generated image URL (empty until the provider completes)",
    )
    status: JobStatus
    created_at: datetime

    @classmethod
    def from_job(cls, job: GenerationJob) -> "ImageDTO":
        return cls(
            id=job.id,
            model_id=job.model_id,
            pack_id=job.pack_id,
            prompt=job.prompt,
            image_url=job.image_url,
            status=job.status,
            created_at=job.created_at,
        )
