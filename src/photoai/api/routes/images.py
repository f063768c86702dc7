"""Generated image read endpoints.

- GET /image/bulk - Caller's images (optionally filtered by ids), newest first
- GET /image/{image_id} - One of the caller's images

Rows are always scoped to the calling account; failed generations are never listed.
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from photoai.api.dependencies import get_current_user_id, get_uow_factory
from photoai.api.schemas import CamelModel, ImageDTO

logger = structlog.get_logger()
router = APIRouter(prefix="/image", tags=["images"])


class ImagesResponse(CamelModel):
    images: list[ImageDTO]


@router.get("/bulk", response_model=ImagesResponse, status_code=status.HTTP_200_OK)
async def list_images(
    ids: list[UUID] | None = Query(default=None, description="Restrict to these image ids"),
    limit: int = Query(default=100, ge=1, le=500, description="Maximum images to return"),
    offset: int = Query(default=0, ge=0, description="Number of images to skip"),
    user_id: str = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> ImagesResponse:
    """Get the caller's images with pagination.

    Example:
        GET /image/bulk?ids=a1...&ids=b2...&limit=20&offset=0

        Response 200:
        {"images": [{"id": "b2...", "status": "complete", "imageUrl": "https://...", ...}]}
    """
    async with await uow_factory() as uow:
        jobs = await uow.images.list_for_account(user_id, ids=ids, limit=limit, offset=offset)

    logger.debug("images.listed", user_id=user_id, count=len(jobs), offset=offset, limit=limit)
    return ImagesResponse(images=[ImageDTO.from_job(job) for job in jobs])


@router.get("/{image_id}", response_model=ImageDTO, status_code=status.HTTP_200_OK)
async def get_image(
    image_id: UUID,
    user_id: str = Depends(get_current_user_id),
    uow_factory=Depends(get_uow_factory),
) -> ImageDTO:
    """Get one image owned by the caller (any status, for polling a pending job)."""
    async with await uow_factory() as uow:
        job = await uow.images.get_owned(image_id, user_id)

    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")

    return ImageDTO.from_job(job)
