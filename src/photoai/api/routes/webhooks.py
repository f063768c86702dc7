"""Replicate webhook endpoints for completion callbacks.

Replicate calls these once a prediction or training reaches a terminal state
(webhooks are registered with the "completed" events filter). The payload is
the full prediction/training document; its "id" is the job handle recorded
at submission.
"""

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from photoai.api.dependencies import get_reconciler, validate_webhook_signature
from photoai.services.provider.gateway import JobKind
from photoai.services.provider.replicate_gateway import outcome_from_payload
from photoai.services.reconciler import CompletionReconciler

logger = structlog.get_logger()
router = APIRouter()


async def _process_callback(
    raw_body: bytes, kind: JobKind, reconciler: CompletionReconciler
) -> dict:
    try:
        payload = json.loads(raw_body)
    except json.JSONDecodeError as e:
        logger.error("webhook.invalid_json", error=str(e), kind=kind.value)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid JSON payload: {str(e)}",
        )

    request_id = payload.get("id") if isinstance(payload, dict) else None
    if not request_id or not isinstance(request_id, str):
        logger.error("webhook.missing_id", kind=kind.value)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload: missing id",
        )

    outcome = outcome_from_payload(payload, kind)
    if outcome is None:
        logger.info(
            "webhook.non_terminal", request_id=request_id, provider_status=payload.get("status")
        )
        return {"status": "ignored"}

    try:
        result = await reconciler.on_provider_callback(request_id, outcome, kind)
    except SQLAlchemyError as e:
        # 5xx makes Replicate redeliver
        logger.error(
            "webhook.processing_failed",
            request_id=request_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook",
        )

    return {"status": result.value}


@router.post("/replicate/image")
async def replicate_image_webhook(
    raw_body: bytes = Depends(validate_webhook_signature),
    reconciler: CompletionReconciler = Depends(get_reconciler),
) -> dict:
    """Receive prediction completions for generated images.

    Returns:
        {"status": "applied" | "duplicate" | "unknown" | "ignored"}

    Raises:
        HTTPException 400: Invalid JSON or missing id
        HTTPException 401: Invalid signature (raised by dependency)
    """
    return await _process_callback(raw_body, JobKind.IMAGE, reconciler)


@router.post("/replicate/training")
async def replicate_training_webhook(
    raw_body: bytes = Depends(validate_webhook_signature),
    reconciler: CompletionReconciler = Depends(get_reconciler),
) -> dict:
    """Receive training completions; success records the trained weights on the model."""
    return await _process_callback(raw_body, JobKind.TRAINING, reconciler)
