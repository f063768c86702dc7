"""Lifecycle status shared by provider-backed rows."""

from enum import Enum


class JobStatus(str, Enum):
    """Provider job lifecycle status.

    pending -> complete | failed; both terminal.
    """

    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PENDING


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid job state transition."""

    pass
