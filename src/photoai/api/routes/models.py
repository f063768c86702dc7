"""Trained model read endpoint.

- GET /models - Caller's models (training or trained), newest first
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from photoai.api.dependencies import get_current_user_id, get_uow_factory
from photoai.api.schemas import CamelModel
from photoai.models.status import JobStatus
from photoai.models.trained_model import EyeColor, Ethnicity, ModelType, TrainedModel

router = APIRouter(prefix="/models", tags=["models"])


class ModelDTO(CamelModel):
    id: UUID
    name: str
    type: ModelType
    age: int
    ethnicity: Ethnicity
    eye_color: EyeColor
    bald: bool
    training_status: JobStatus
    trained: bool
    created_at: datetime

    @classmethod
    def from_model(cls, model: TrainedModel) -> "ModelDTO":
        return cls(
            id=model.id,
            name=model.name,
            type=model.type,
            age=model.age,
            ethnicity=model.ethnicity,
            eye_color=model.eye_color,
            bald=model.bald,
            training_status=model.training_status,
            trained=model.is_trained,
            created_at=model.created_at,
        )


class ModelsResponse(CamelModel):
    models: list[ModelDTO]


@router.get("", response_model=ModelsResponse, status_code=status.HTTP_200_OK)
async def list_models(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> ModelsResponse:
    """List the caller's models; failed trainings are hidden."""
    async with await uow_factory() as uow:
        models = await uow.models.list_for_account(user_id, limit=limit, offset=offset)

    return ModelsResponse(models=[ModelDTO.from_model(model) for model in models])
