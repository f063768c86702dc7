"""Translation of service errors to HTTP responses.

Client-side problems (bad input, unknown model, not enough credits) are answered
with 411 and their message. Everything else is a 500 with a generic message; the
detail only goes to the log.
"""

import structlog
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from photoai.services.exceptions import (
    InsufficientCredit,
    ModelNotFound,
    ServiceError,
    ValidationError,
)

logger = structlog.get_logger()

INPUT_ERROR_STATUS = status.HTTP_411_LENGTH_REQUIRED
INTERNAL_ERROR_DETAIL = "Something went wrong. Please try again later."


def to_http_exception(error: ServiceError, event: str, **context) -> HTTPException:
    """Map a service error to the HTTPException the client sees.

    Args:
        error: Raised service error
        event: Log event name for this endpoint
        **context: Extra key/values for the log entry

    Returns:
        HTTPException to raise
    """
    if isinstance(error, (ValidationError, ModelNotFound, InsufficientCredit)):
        logger.info(event, rejected=type(error).__name__, error=str(error), **context)
        return HTTPException(status_code=INPUT_ERROR_STATUS, detail=str(error))

    logger.error(event, error=str(error), error_type=type(error).__name__, **context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR_DETAIL
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed request bodies with 411 and the field errors."""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    logger.info("request.invalid_input", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=INPUT_ERROR_STATUS,
        content={"detail": "Input incorrect", "errors": errors},
    )
