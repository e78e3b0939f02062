"""Job manager -- creates jobs, enforces lifecycle transitions, and keeps the audit trail.

The ``JobManager`` is the central orchestration object and the only code that
changes a job's ``status`` or ``status_history``.  Every status change runs the
state machine first, then the job-specific checks (assignee standing, required
notes), and finally commits the new revision through the ``JobStore``
compare-and-swap so concurrent writers from the same stale read cannot both
succeed.

Assignment and reassignment are compound commands built on the same
transition primitive.  Reassignment is the one deliberate exception to
forward-only flow: an administrator may pull an active job back to ASSIGNED
under a new technician, and the reset is recorded in the history like any
other transition.
"""

import logging
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import ValidationError

from fieldservice.errors import (
    ErrorCause,
    JobValidationError,
    NotAssignedError,
    NotAuthorizedError,
    PolicyViolationError,
    PreconditionError,
    ReferenceLookupError,
    UnknownTechnicianError,
)
from fieldservice.models import (
    Job,
    JobCreateRequest,
    JobStatus,
    JobUpdateRequest,
    Role,
    StatusHistoryEntry,
    StatusHistoryView,
    User,
)
from fieldservice.services.job_store import JobStore
from fieldservice.services.user_directory import UserDirectory
from fieldservice.state_machine import StateMachine

logger = logging.getLogger(__name__)

# Fields only the lifecycle operations may write.
PROTECTED_FIELDS: frozenset[str] = frozenset(
    {
        "job_id",
        "revision",
        "status",
        "status_history",
        "assigned_technician",
        "completed_at",
        "billed_at",
        "created_by",
        "created_at",
        "updated_at",
    }
)

REASSIGNABLE_STATUSES: frozenset[JobStatus] = frozenset(
    {JobStatus.ASSIGNED, JobStatus.DISPATCHED, JobStatus.IN_PROGRESS}
)

# Derived timestamp written the first time a job enters the status.
_STATUS_TIMESTAMPS: dict[JobStatus, str] = {
    JobStatus.COMPLETED: "completed_at",
    JobStatus.BILLED: "billed_at",
}


def _validation_error(exc: ValidationError) -> JobValidationError:
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return JobValidationError(ErrorCause.VALIDATION_ERROR, f"Invalid job fields: {summary}", {"errors": errors})


class JobManager:
    """Lifecycle orchestrator for service jobs.

    Attributes:
        store: Where job revisions are committed.
        users: Directory used to resolve technicians.
        state_machine: Evaluator for the configured transition policy.
        protected_fields_policy: ``reject`` or ``strip`` lifecycle fields
            submitted to ``update_job_details``.
    """

    def __init__(
        self,
        store: JobStore,
        users: UserDirectory,
        state_machine: StateMachine,
        protected_fields_policy: Literal["reject", "strip"] = "reject",
    ) -> None:
        self.store = store
        self.users = users
        self.state_machine = state_machine
        self.protected_fields_policy = protected_fields_policy

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def create_job(self, fields: Mapping[str, Any], creator_id: str) -> Job:
        """Create a new job in the TENTATIVE status.

        Args:
            fields: Business fields; ``title`` and ``customer_name`` are required.
            creator_id: User id recorded as creator and on the seed history entry.

        Returns:
            The stored ``Job`` with a single ``None -> TENTATIVE`` history entry.

        Raises:
            JobValidationError: If fields are missing or malformed.
        """
        try:
            request = JobCreateRequest.model_validate(dict(fields))
        except ValidationError as exc:
            raise _validation_error(exc) from exc

        now = datetime.now(tz=UTC)
        job = Job(
            job_id=uuid.uuid4().hex[:12],
            **request.model_dump(),
            status=JobStatus.TENTATIVE,
            status_history=(
                StatusHistoryEntry(
                    from_status=None,
                    to_status=JobStatus.TENTATIVE,
                    acting_user_id=creator_id,
                    notes="Job created",
                    timestamp=now,
                ),
            ),
            created_by=creator_id,
            created_at=now,
            updated_at=now,
        )
        job = self.store.insert(job)
        logger.info("Created job %s (%s) for customer %s", job.job_id, job.title, job.customer_name)
        return job

    def get_job(self, job_id: str) -> Job:
        """Retrieve the latest revision of a job.

        Raises:
            JobNotFoundError: If no job with the given ID exists.
        """
        return self.store.get(job_id)

    def get_job_for_user(self, job_id: str, user: User) -> Job:
        """Retrieve a job, hiding other technicians' jobs from technicians.

        Raises:
            JobNotFoundError: If no job with the given ID exists.
            NotAuthorizedError: If a technician asks for a job not assigned to them.
        """
        job = self.store.get(job_id)
        if user.role == Role.TECHNICIAN and job.assigned_technician != user.user_id:
            raise NotAuthorizedError(job_id, user.user_id)
        return job

    def list_jobs(self, user: User, status: JobStatus | None = None, technician_id: str | None = None) -> list[Job]:
        """List jobs visible to *user*, newest first.

        Technicians only ever see their own jobs; the *technician_id* filter is
        ignored for them.
        """
        if user.role == Role.TECHNICIAN:
            technician_id = user.user_id
        return self.store.query(status=status, technician_id=technician_id)

    def get_status_history(self, job_id: str, user: User) -> StatusHistoryView:
        """Return a job's current status and ordered audit trail.

        Raises:
            JobNotFoundError: If no job with the given ID exists.
            NotAuthorizedError: If a technician asks for a job not assigned to them.
        """
        job = self.get_job_for_user(job_id, user)
        return StatusHistoryView(
            job_id=job.job_id,
            title=job.title,
            current_status=job.status,
            history=list(job.status_history),
        )

    def delete_job(self, job_id: str) -> Job:
        """Administratively remove a job regardless of status.

        Raises:
            JobNotFoundError: If no job with the given ID exists.
        """
        job = self.store.delete(job_id)
        logger.info("Deleted job %s in status %s", job_id, job.status.value)
        return job

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def transition_status(
        self, job: Job, requested_status: JobStatus, acting_user: User, notes: str | None = None
    ) -> Job:
        """Move *job* to *requested_status* on behalf of *acting_user*.

        Args:
            job: The job as the caller last read it.
            requested_status: The desired next status.
            acting_user: Who is performing the change.
            notes: Optional audit note; required on some edges.

        Returns:
            The committed ``Job`` revision.

        Raises:
            InvalidTransitionError: If the policy forbids the change.
            NotAssignedError: If a technician is not the job's assignee.
            JobValidationError: If the edge requires notes and none were given.
            ConcurrencyConflictError: If the job changed since it was read.
        """
        self._check_transition(job, requested_status, acting_user)
        self._check_assignee(job, acting_user)
        self._check_notes(job.status, requested_status, notes)
        return self._apply_transition(job, requested_status, acting_user, notes)

    def assign_technician(
        self, job: Job, technician_id: str, acting_user: User, notes: str | None = None
    ) -> Job:
        """Assign a technician to a CONFIRMED job and move it to ASSIGNED.

        Raises:
            PreconditionError: If the job is not CONFIRMED.
            InvalidTransitionError: If *acting_user* may not assign.
            UnknownTechnicianError: If *technician_id* does not exist.
            ReferenceLookupError: If the user is not a technician.
            ConcurrencyConflictError: If the job changed since it was read.
        """
        if job.status != JobStatus.CONFIRMED:
            raise PreconditionError(
                ErrorCause.WRONG_STATUS_FOR_ASSIGN,
                f"Job must be in CONFIRMED status to assign a technician (current: {job.status.value})",
                {"current_status": job.status.value, "required_status": JobStatus.CONFIRMED.value},
            )
        self._check_transition(job, JobStatus.ASSIGNED, acting_user)
        technician = self._resolve_technician(technician_id)

        default = f"Assigned to technician {technician.name}"
        return self._apply_transition(
            job,
            JobStatus.ASSIGNED,
            acting_user,
            notes or default,
            assigned_technician=technician.user_id,
        )

    def reassign_technician(
        self, job: Job, new_technician_id: str, acting_user: User, notes: str | None = None
    ) -> Job:
        """Hand an active job to another technician and reset it to ASSIGNED.

        This bypasses the transition table on purpose: it is the administrator's
        escape hatch for a stuck or reshuffled job.  The reset is still written
        to the history with the prior status as ``from_status``.

        Raises:
            PolicyViolationError: If *acting_user* is not an administrator.
            PreconditionError: If the job is not ASSIGNED, DISPATCHED or IN_PROGRESS.
            UnknownTechnicianError: If *new_technician_id* does not exist.
            ReferenceLookupError: If the user is not a technician.
            JobValidationError: If the new technician is already the assignee.
            ConcurrencyConflictError: If the job changed since it was read.
        """
        if acting_user.role != Role.ADMIN:
            raise PolicyViolationError(
                ErrorCause.ROLE_NOT_AUTHORIZED,
                f"Role {acting_user.role.value} cannot reassign technicians. Allowed roles: {Role.ADMIN.value}",
                {"role": acting_user.role.value, "allowed_roles": [Role.ADMIN.value]},
            )
        if job.status not in REASSIGNABLE_STATUSES:
            allowed = [s.value for s in JobStatus if s in REASSIGNABLE_STATUSES]
            raise PreconditionError(
                ErrorCause.WRONG_STATUS_FOR_REASSIGN,
                f"Job in status {job.status.value} cannot be reassigned. Reassignable statuses: {', '.join(allowed)}",
                {"current_status": job.status.value, "allowed_statuses": allowed},
            )
        technician = self._resolve_technician(new_technician_id)
        if technician.user_id == job.assigned_technician:
            raise JobValidationError(
                ErrorCause.SAME_TECHNICIAN,
                f"Technician {technician.user_id} is already assigned to job {job.job_id}",
                {"technician_id": technician.user_id},
            )

        default = (
            f"Reassigned from {job.assigned_technician or 'nobody'} to {technician.name}; "
            f"status reset from {job.status.value} to {JobStatus.ASSIGNED.value}"
        )
        updated = self._apply_transition(
            job,
            JobStatus.ASSIGNED,
            acting_user,
            notes or default,
            assigned_technician=technician.user_id,
        )
        logger.info("Job %s reassigned from %s to %s", job.job_id, job.assigned_technician, technician.user_id)
        return updated

    # ------------------------------------------------------------------
    # Non-status edits
    # ------------------------------------------------------------------

    def update_job_details(self, job: Job, fields: Mapping[str, Any]) -> Job:
        """Edit business fields of a job without touching its lifecycle.

        Args:
            job: The job as the caller last read it.
            fields: Fields to change.  Lifecycle fields such as ``status`` are
                rejected, or dropped when ``protected_fields_policy`` is ``strip``.

        Returns:
            The committed ``Job`` revision.

        Raises:
            JobValidationError: If a protected field is submitted under the
                ``reject`` policy, or a field is unknown or malformed.
            ConcurrencyConflictError: If the job changed since it was read.
        """
        submitted = dict(fields)
        protected = sorted(PROTECTED_FIELDS.intersection(submitted))
        if protected:
            if self.protected_fields_policy == "reject":
                raise JobValidationError(
                    ErrorCause.PROTECTED_FIELD,
                    f"Fields {', '.join(protected)} can only change through status transitions",
                    {"fields": protected},
                )
            logger.info("Ignoring protected fields %s in update of job %s", protected, job.job_id)
            for name in protected:
                submitted.pop(name)

        try:
            changes = JobUpdateRequest.model_validate(submitted).model_dump(exclude_unset=True)
            updated = Job.model_validate(
                {**job.model_dump(), **changes, "updated_at": datetime.now(tz=UTC)}
            )
        except ValidationError as exc:
            raise _validation_error(exc) from exc

        updated = self.store.replace(updated, expected_revision=job.revision)
        logger.info("Updated fields %s on job %s", sorted(changes), job.job_id)
        return updated

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_transition(self, job: Job, requested_status: JobStatus, acting_user: User) -> None:
        verdict = self.state_machine.validate(job.status, requested_status, acting_user.role)
        if not verdict.allowed:
            logger.info("Denied transition on job %s: %s", job.job_id, verdict.reason)
        verdict.raise_for_denial()

    def _check_assignee(self, job: Job, acting_user: User) -> None:
        if acting_user.role == Role.TECHNICIAN and job.assigned_technician != acting_user.user_id:
            raise NotAssignedError(job.job_id, acting_user.user_id)

    def _check_notes(self, current: JobStatus, requested: JobStatus, notes: str | None) -> None:
        if self.state_machine.requires_notes(current, requested) and not (notes and notes.strip()):
            raise JobValidationError(
                ErrorCause.NOTES_REQUIRED,
                f"Notes are required to move a job from {current.value} to {requested.value}",
                {"current_status": current.value, "requested_status": requested.value},
            )

    def _resolve_technician(self, technician_id: str) -> User:
        try:
            user = self.users.get_user(technician_id)
        except KeyError as exc:
            raise UnknownTechnicianError(technician_id) from exc
        if user.role != Role.TECHNICIAN:
            raise ReferenceLookupError(
                ErrorCause.WRONG_ROLE,
                f"User {technician_id} has role {user.role.value}, expected {Role.TECHNICIAN.value}",
                {"user_id": technician_id, "role": user.role.value},
            )
        return user

    def _apply_transition(
        self,
        job: Job,
        requested_status: JobStatus,
        acting_user: User,
        notes: str | None,
        **extra: Any,
    ) -> Job:
        """Build the next revision (history entry, status, derived timestamps) and commit it."""
        now = datetime.now(tz=UTC)
        entry = StatusHistoryEntry(
            from_status=job.status,
            to_status=requested_status,
            acting_user_id=acting_user.user_id,
            notes=notes or f"Status changed from {job.status.value} to {requested_status.value}",
            timestamp=now,
        )
        update: dict[str, Any] = {
            **extra,
            "status": requested_status,
            "status_history": (*job.status_history, entry),
            "updated_at": now,
        }
        stamp = _STATUS_TIMESTAMPS.get(requested_status)
        if stamp is not None and getattr(job, stamp) is None:
            update[stamp] = now

        updated = self.store.replace(job.model_copy(update=update), expected_revision=job.revision)
        logger.info(
            "Job %s transitioned %s -> %s by %s (%s)",
            job.job_id,
            job.status.value,
            requested_status.value,
            acting_user.user_id,
            acting_user.role.value,
        )
        return updated
