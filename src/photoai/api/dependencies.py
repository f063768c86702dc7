"""FastAPI dependencies for request validation and common operations.

This module provides reusable FastAPI dependencies for:
- Webhook signature validation
- Caller identity
- Access to the unit-of-work factory, provider gateway and services
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from photoai.core.config import Settings
from photoai.services.generation import GenerationOrchestrator
from photoai.services.provider.gateway import ProviderGateway
from photoai.services.provider.webhook_signature import validate_replicate_signature
from photoai.services.reconciler import CompletionReconciler
from photoai.uow import UnitOfWorkFactory


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings instance loaded from environment variables.
    """
    return Settings()  # type: ignore[call-arg]  # Pydantic loads from env vars


async def get_current_user_id(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Resolve the calling account from the X-User-Id header.

    The header is set by the upstream authentication layer; this service trusts it.

    Raises:
        HTTPException: 401 Unauthorized if the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return x_user_id.strip()


async def validate_webhook_signature(
    request: Request,
    webhook_id: Annotated[str | None, Header()] = None,
    webhook_timestamp: Annotated[str | None, Header()] = None,
    webhook_signature: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> bytes:
    """Validate Replicate webhook signature before processing request.

    Reads the raw request body and validates it against the webhook-id,
    webhook-timestamp and webhook-signature headers. If validation fails, it
    raises a 401 Unauthorized error before any request processing occurs.

    Returns:
        Raw request body bytes (for further processing by the endpoint)

    Raises:
        HTTPException: 401 Unauthorized if signature headers are missing or invalid

    Example:
        >>> @router.post("/replicate/image")
        >>> async def webhook_endpoint(
        ...     raw_body: bytes = Depends(validate_webhook_signature)
        ... ):
        ...     payload = json.loads(raw_body)
    """
    if not webhook_id or not webhook_timestamp or not webhook_signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature headers"
        )

    # Must be the exact bytes received for signature validation
    raw_body = await request.body()

    is_valid = validate_replicate_signature(
        raw_body=raw_body,
        webhook_id=webhook_id,
        timestamp=webhook_timestamp,
        signature_header=webhook_signature,
        signing_secret=settings.replicate_webhook_secret,
    )

    if not is_valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature"
        )

    return raw_body


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.get("/endpoint")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.credits.get_balance(user_id)
    """
    return request.app.state.uow_factory


def get_gateway(request: Request) -> ProviderGateway:
    """Get the provider gateway created in the app lifespan."""
    return request.app.state.gateway


def get_orchestrator(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    gateway: ProviderGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(uow_factory, gateway, settings)


def get_reconciler(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
) -> CompletionReconciler:
    return CompletionReconciler(uow_factory)
