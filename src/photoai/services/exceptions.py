"""Service error hierarchy for the generation pipeline.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- Client errors (ValidationError, ModelNotFound, InsufficientCredit): recovered
  locally and reported to the caller with their message
- ProviderError: External provider failures (unavailable vs. rejected)
- Internal errors (DispatchResultMismatch, PersistenceError): reported to the
  caller as a generic internal error
"""


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class ValidationError(ServiceError):
    """Malformed input. Raised before any side effect."""

    pass


class ModelNotFound(ServiceError):
    """Referenced model does not exist, is not owned by the caller, or is not trained yet."""

    def __init__(self, model_id, reason: str = "Model not found"):
        super().__init__(reason)
        self.model_id = model_id


class InsufficientCredit(ServiceError):
    """Requested debit exceeds the balance at evaluation time."""

    def __init__(self, user_id: str, required: int, available: int):
        super().__init__("Not enough credits")
        self.user_id = user_id
        self.required = required
        self.available = available


# Provider errors
class ProviderError(ServiceError):
    """Base exception for external provider errors."""

    pass


class ProviderUnavailable(ProviderError):
    """Provider could not be reached in time.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (5xx)
    """

    pass


class ProviderRejected(ProviderError):
    """Provider refused the submission.

    Examples:
    - Authentication failures (401, 403)
    - Invalid input (400, 422)
    - Content policy violations
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# Internal consistency errors
class DispatchResultMismatch(ServiceError):
    """A dispatched prompt came back without a provider handle."""

    pass


class PersistenceError(ServiceError):
    """Database write failed (e.g. duplicate provider handle)."""

    pass
