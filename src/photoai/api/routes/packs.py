"""Prompt pack endpoints.

- POST /pack/generate - Generate one image per pack prompt, charged as one debit
- GET /pack/bulk - List all packs
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status

from photoai.api.dependencies import get_current_user_id, get_orchestrator, get_uow_factory
from photoai.api.errors import to_http_exception
from photoai.api.schemas import CamelModel
from photoai.services.exceptions import ServiceError
from photoai.services.generation import GenerationOrchestrator

logger = structlog.get_logger()
router = APIRouter(prefix="/pack", tags=["packs"])


class GeneratePackRequest(CamelModel):
    pack_id: UUID
    model_id: UUID


class GeneratePackResponse(CamelModel):
    images: list[UUID]


class PackDTO(CamelModel):
    id: UUID
    name: str
    description: str | None = None
    image_url1: str | None = None
    image_url2: str | None = None
    created_at: datetime


class PacksResponse(CamelModel):
    packs: list[PackDTO]


@router.post("/generate", response_model=GeneratePackResponse, status_code=status.HTTP_200_OK)
async def generate_pack(
    request: GeneratePackRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GeneratePackResponse:
    """Generate images for every prompt of a pack.

    The whole pack is paid in one debit; if any submission fails nothing is
    charged and no image is recorded.

    Example:
        POST /pack/generate
        {"packId": "0b7e...", "modelId": "5f0c..."}

        Response 200:
        {"images": ["a1...", "b2...", "c3..."]}
    """
    try:
        image_ids = await orchestrator.generate_pack(user_id, request.pack_id, request.model_id)
    except ServiceError as e:
        raise to_http_exception(
            e,
            "pack.generate.failed",
            user_id=user_id,
            pack_id=str(request.pack_id),
            model_id=str(request.model_id),
        )

    return GeneratePackResponse(images=image_ids)


@router.get("/bulk", response_model=PacksResponse, status_code=status.HTTP_200_OK)
async def list_packs(uow_factory=Depends(get_uow_factory)) -> PacksResponse:
    """List every available pack (public reference data)."""
    async with await uow_factory() as uow:
        packs = await uow.packs.list_all()

    return PacksResponse(
        packs=[
            PackDTO(
                id=pack.id,
                name=pack.name,
                description=pack.description,
                image_url1=pack.image_url1,
                image_url2=pack.image_url2,
                created_at=pack.created_at,
            )
            for pack in packs
        ]
    )
