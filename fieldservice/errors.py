"""Cause-tagged error model for job lifecycle operations.

Every failure the orchestrator can report is a ``JobServiceError`` carrying an
``ErrorKind`` (the broad category) and an ``ErrorCause`` (the precise reason),
so callers and tests can branch on the cause instead of parsing messages.
The HTTP layer renders them with ``to_dict``.
"""

import enum
from typing import Any


class ErrorKind(enum.StrEnum):
    """Broad failure categories."""

    POLICY_VIOLATION = "POLICY_VIOLATION"
    ACTOR_MISMATCH = "ACTOR_MISMATCH"
    PRECONDITION_FAILURE = "PRECONDITION_FAILURE"
    REFERENCE_ERROR = "REFERENCE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"


class ErrorCause(enum.StrEnum):
    """Precise failure reasons."""

    SAME_STATUS = "SAME_STATUS"
    NO_SUCH_EDGE = "NO_SUCH_EDGE"
    ROLE_NOT_AUTHORIZED = "ROLE_NOT_AUTHORIZED"
    NOT_ASSIGNED = "NOT_ASSIGNED"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    WRONG_STATUS_FOR_ASSIGN = "WRONG_STATUS_FOR_ASSIGN"
    WRONG_STATUS_FOR_REASSIGN = "WRONG_STATUS_FOR_REASSIGN"
    UNKNOWN_TECHNICIAN = "UNKNOWN_TECHNICIAN"
    WRONG_ROLE = "WRONG_ROLE"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOTES_REQUIRED = "NOTES_REQUIRED"
    PROTECTED_FIELD = "PROTECTED_FIELD"
    SAME_TECHNICIAN = "SAME_TECHNICIAN"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"


class JobServiceError(Exception):
    """Base exception for every recoverable job lifecycle failure.

    Attributes:
        kind: Broad category of the failure.
        cause: Precise reason for the failure.
        message: Human-readable description suitable for end users.
        details: Structured context (statuses, allowed alternatives, ...).
    """

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, cause: ErrorCause, message: str, details: dict[str, Any] | None = None) -> None:
        self.cause = cause
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether repeating the same request after a re-fetch may succeed."""
        return self.kind is ErrorKind.CONCURRENCY_CONFLICT

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to the JSON body returned by the HTTP layer."""
        return {
            "error": {
                "kind": self.kind.value,
                "cause": self.cause.value,
                "message": self.message,
                "retryable": self.retryable,
                "details": self.details,
            }
        }


class PolicyViolationError(JobServiceError):
    """The transition policy forbids the request."""

    kind = ErrorKind.POLICY_VIOLATION


class ActorMismatchError(JobServiceError):
    """The role is acceptable but this specific actor has no standing on the job."""

    kind = ErrorKind.ACTOR_MISMATCH


class NotAssignedError(ActorMismatchError):
    """A technician tried to move a job that is not assigned to them."""

    def __init__(self, job_id: str, user_id: str) -> None:
        super().__init__(
            ErrorCause.NOT_ASSIGNED,
            f"Technician {user_id} is not assigned to job {job_id}",
            {"job_id": job_id, "user_id": user_id},
        )


class NotAuthorizedError(ActorMismatchError):
    """The caller may not view the job."""

    def __init__(self, job_id: str, user_id: str) -> None:
        super().__init__(
            ErrorCause.NOT_AUTHORIZED,
            "Not authorized to view this job",
            {"job_id": job_id, "user_id": user_id},
        )


class PreconditionError(JobServiceError):
    """A compound operation's state requirement is not met."""

    kind = ErrorKind.PRECONDITION_FAILURE


class ReferenceLookupError(JobServiceError):
    """A referenced entity does not exist or lacks a required property."""

    kind = ErrorKind.REFERENCE_ERROR


class JobNotFoundError(ReferenceLookupError):
    """No job exists with the given identifier."""

    def __init__(self, job_id: str) -> None:
        super().__init__(ErrorCause.NOT_FOUND, f"Job {job_id!r} not found", {"job_id": job_id})


class UnknownTechnicianError(ReferenceLookupError):
    """The referenced technician does not exist."""

    def __init__(self, user_id: str) -> None:
        super().__init__(ErrorCause.UNKNOWN_TECHNICIAN, f"Technician {user_id!r} not found", {"user_id": user_id})


class JobValidationError(JobServiceError):
    """Malformed or missing input, independent of the state machine."""

    kind = ErrorKind.VALIDATION_ERROR


class ConcurrencyConflictError(JobServiceError):
    """The job changed since the caller read it; re-fetch and retry."""

    kind = ErrorKind.CONCURRENCY_CONFLICT

    def __init__(self, job_id: str, expected_revision: int, actual_revision: int) -> None:
        super().__init__(
            ErrorCause.CONCURRENCY_CONFLICT,
            f"Job {job_id} was modified concurrently (expected revision {expected_revision}, "
            f"found {actual_revision}); re-fetch and retry",
            {"job_id": job_id, "expected_revision": expected_revision, "actual_revision": actual_revision},
        )
