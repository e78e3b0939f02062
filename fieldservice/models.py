"""Pydantic models for the field-service API contracts and internal job records.

This module defines every request body, response body, and internal record used by the
service.  All structured data flows through these models -- no loose dicts.
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class JobStatus(enum.StrEnum):
    """All statuses a field-service job can occupy in its lifecycle.

    Declaration order is the workflow order.  Which statuses take part in a
    given deployment is decided by the configured transition policy -- see
    ``fieldservice.transition_policy``.
    """

    TENTATIVE = "TENTATIVE"
    CONFIRMED = "CONFIRMED"
    ASSIGNED = "ASSIGNED"
    DISPATCHED = "DISPATCHED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BILLED = "BILLED"


class Role(enum.StrEnum):
    """The single role a user holds.  There is no role hierarchy."""

    ADMIN = "ADMIN"
    OFFICE_MANAGER = "OFFICE_MANAGER"
    TECHNICIAN = "TECHNICIAN"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(BaseModel):
    """A person acting on jobs.

    Stored in-memory by the ``UserDirectory``.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(description="Unique user identifier")
    name: str = Field(description="Display name")
    email: str = Field(default="", description="Contact email address")
    role: Role = Field(description="The user's only role")


class CreateUserRequest(BaseModel):
    """Request body for ``POST /users``."""

    name: str = Field(min_length=1, description="Display name")
    email: str = Field(default="", description="Contact email address")
    role: Role = Field(description="Role to grant")
    user_id: str = Field(default="", description="Optional explicit identifier; generated when empty")


class UsersResponse(BaseModel):
    """Response payload for ``GET /users/technicians``."""

    users: list[User] = Field(default_factory=list, description="Matching users")


# ---------------------------------------------------------------------------
# Internal job record
# ---------------------------------------------------------------------------


class StatusHistoryEntry(BaseModel):
    """One immutable row of a job's audit trail.

    ``from_status`` is ``None`` only for the entry written when the job is
    created.
    """

    model_config = ConfigDict(frozen=True)

    from_status: JobStatus | None = Field(default=None, description="Status before the change")
    to_status: JobStatus = Field(description="Status after the change")
    acting_user_id: str = Field(description="User who performed the change")
    notes: str = Field(default="", description="Free-form note recorded with the change")
    timestamp: datetime = Field(description="UTC time the change was applied")


class Job(BaseModel):
    """Internal record representing a single service job.

    The record is frozen: every change produces a new revision through the
    ``JobManager``, which is the only place that writes ``status`` and
    ``status_history``.
    """

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(description="Unique job identifier")
    revision: int = Field(default=0, description="Optimistic-concurrency token, bumped on every write")

    # Business fields
    title: str = Field(description="Short job title")
    description: str = Field(default="", description="Longer job description")
    customer_name: str = Field(description="Customer the work is performed for")
    customer_email: str | None = Field(default=None, description="Customer email address")
    customer_phone: str | None = Field(default=None, description="Customer phone number")
    address: str = Field(default="", description="Service address")
    scheduled_date: datetime | None = Field(default=None, description="Scheduled visit time")
    estimated_cost: float | None = Field(default=None, description="Quoted cost")
    actual_cost: float | None = Field(default=None, description="Final cost")
    notes: str = Field(default="", description="Office notes")

    # Lifecycle fields
    status: JobStatus = Field(default=JobStatus.TENTATIVE, description="Current lifecycle status")
    status_history: tuple[StatusHistoryEntry, ...] = Field(
        default=(), description="Chronological, append-only audit trail"
    )
    assigned_technician: str | None = Field(default=None, description="User id of the assigned technician")
    completed_at: datetime | None = Field(default=None, description="Set once when the job enters COMPLETED")
    billed_at: datetime | None = Field(default=None, description="Set once when the job enters BILLED")

    created_by: str = Field(description="User id of the creator")
    created_at: datetime = Field(description="Job creation timestamp")
    updated_at: datetime = Field(description="Last modification timestamp")


# ---------------------------------------------------------------------------
# Job field validation
# ---------------------------------------------------------------------------


class _JobFieldsMixin(BaseModel):
    """Validators shared by the create and update bodies."""

    @field_validator("scheduled_date", mode="before", check_fields=False)
    @classmethod
    def _check_iso_date(cls, value: object) -> object:
        # ISO 8601 strings only, never numeric timestamps
        if value is None or isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            raise ValueError("must be an ISO 8601 date string")
        try:
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"invalid ISO 8601 date {value!r}") from exc

    @field_validator("title", "customer_name", check_fields=False)
    @classmethod
    def _check_not_blank(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("must not be blank")
        return value


class JobCreateRequest(_JobFieldsMixin):
    """Fields accepted when creating a job (``POST /jobs``)."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(description="Job title is required")
    customer_name: str = Field(description="Customer name is required")
    description: str = ""
    customer_email: EmailStr | None = None
    customer_phone: str | None = None
    address: str = ""
    scheduled_date: datetime | None = None
    estimated_cost: float | None = Field(default=None, ge=0)
    notes: str = ""


class JobUpdateRequest(_JobFieldsMixin):
    """Non-lifecycle fields accepted by ``PUT /jobs/{id}``.  All optional."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    customer_name: str | None = None
    description: str | None = None
    customer_email: EmailStr | None = None
    customer_phone: str | None = None
    address: str | None = None
    scheduled_date: datetime | None = None
    estimated_cost: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)
    notes: str | None = None


# ---------------------------------------------------------------------------
# Job API bodies
# ---------------------------------------------------------------------------


class TransitionRequest(BaseModel):
    """Request body for ``PATCH /jobs/{id}/status``."""

    status: JobStatus = Field(description="Requested next status")
    notes: str | None = Field(default=None, description="Optional note for the audit trail")


class AssignRequest(BaseModel):
    """Request body for ``PATCH /jobs/{id}/assign`` and ``/reassign``."""

    technician_id: str = Field(description="User id of the technician")
    notes: str | None = Field(default=None, description="Optional note for the audit trail")


class JobResponse(BaseModel):
    """Single-job response envelope."""

    data: Job
    message: str = ""


class JobListResponse(BaseModel):
    """Response payload for ``GET /jobs``."""

    data: list[Job] = Field(default_factory=list)
    total: int = 0


class StatusHistoryView(BaseModel):
    """Response payload for ``GET /jobs/{id}/history``."""

    job_id: str
    title: str
    current_status: JobStatus
    history: list[StatusHistoryEntry]


# ---------------------------------------------------------------------------
# State machine introspection
# ---------------------------------------------------------------------------


class TransitionEdge(BaseModel):
    """One outgoing edge of a status."""

    to: JobStatus
    allowed_roles: list[Role]
    requires_notes: bool = False


class StatusDescription(BaseModel):
    """Outgoing edges of a single status."""

    edges: list[TransitionEdge] = Field(default_factory=list)
    is_terminal: bool


class StateMachineResponse(BaseModel):
    """Response payload for ``GET /state-machine``."""

    workflow: str = Field(description="Active workflow variant")
    statuses: dict[JobStatus, StatusDescription]
    role: Role = Field(description="Role of the caller")
    next_statuses_for_role: dict[JobStatus, list[JobStatus]]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response payload for ``GET /health``."""

    status: str = Field(description="Service health status string, e.g. 'ok'")
    workflow: str = Field(description="Active workflow variant")
    job_count: int = Field(description="Number of jobs currently held")
