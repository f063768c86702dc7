"""Model training and single image generation endpoints.

- POST /ai/training - Start training a personal model from a zip of photos
- POST /ai/generate - Generate one image with a trained model (1 credit)
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, Field, field_validator

from photoai.api.dependencies import get_current_user_id, get_orchestrator
from photoai.api.errors import to_http_exception
from photoai.api.schemas import CamelModel
from photoai.models.trained_model import EyeColor, Ethnicity, ModelType
from photoai.services.exceptions import ServiceError
from photoai.services.generation import GenerationOrchestrator
from photoai.services.provider.gateway import ModelAttributes

logger = structlog.get_logger()
router = APIRouter(prefix="/ai", tags=["ai"])


class TrainModelRequest(CamelModel):
    """Request model for starting a training run."""

    name: str = Field(..., min_length=1, max_length=255)
    type: ModelType
    age: int = Field(..., ge=0, le=150)
    ethnicity: Ethnicity = Field(..., validation_alias=AliasChoices("ethnicity", "ethinicity"))
    eye_color: EyeColor
    bald: bool = False
    zip_url: str = Field(..., min_length=1, description="URL of the zip archive of photos")

    @field_validator("type", "ethnicity", "eye_color", mode="before")
    @classmethod
    def normalize_enum(cls, v):
        """Accept display spellings such as "Asian American" or "Hazel"."""
        if isinstance(v, str):
            return v.strip().lower().replace(" ", "_")
        return v


class TrainModelResponse(CamelModel):
    model_id: UUID


class GenerateImageRequest(CamelModel):
    model_id: UUID
    prompt: str = Field(..., min_length=1, max_length=1000)


class GenerateImageResponse(CamelModel):
    image_id: UUID


@router.post("/training", response_model=TrainModelResponse, status_code=status.HTTP_200_OK)
async def train_model(
    request: TrainModelRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> TrainModelResponse:
    """Submit a training job and record the pending model.

    Example:
        POST /ai/training
        {"name": "Alex", "type": "man", "age": 30, "ethnicity": "white",
         "eyeColor": "blue", "bald": false, "zipUrl": "https://.../photos.zip"}

        Response 200:
        {"modelId": "5f0c..."}
    """
    attributes = ModelAttributes(
        type=request.type,
        age=request.age,
        ethnicity=request.ethnicity,
        eye_color=request.eye_color,
        bald=request.bald,
    )
    try:
        model_id = await orchestrator.submit_training(
            user_id, request.name, request.zip_url, attributes
        )
    except ServiceError as e:
        raise to_http_exception(e, "ai.training.failed", user_id=user_id)

    return TrainModelResponse(model_id=model_id)


@router.post("/generate", response_model=GenerateImageResponse, status_code=status.HTTP_200_OK)
async def generate_image(
    request: GenerateImageRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerateImageResponse:
    """Debit one image's credits and enqueue the generation.

    Returns 411 when the model is unknown or untrained, or the balance is too low.
    """
    try:
        image_id = await orchestrator.generate_image(user_id, request.model_id, request.prompt)
    except ServiceError as e:
        raise to_http_exception(
            e, "ai.generate.failed", user_id=user_id, model_id=str(request.model_id)
        )

    return GenerateImageResponse(image_id=image_id)
