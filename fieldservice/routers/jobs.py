"""Job endpoints -- creation, status transitions, assignment, edits, and history.

Request bodies that carry job fields are accepted as raw JSON objects and
handed to the ``JobManager`` so that every field problem is reported the same
way, as a ``VALIDATION_ERROR``.  ``JobServiceError`` subclasses raised by the
manager are rendered by the application-level handler in ``main``.

Handlers are plain functions: the store takes a lock and may write snapshot
files, so FastAPI runs them in its threadpool rather than on the event loop.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from fieldservice.models import (
    AssignRequest,
    JobListResponse,
    JobResponse,
    JobStatus,
    Role,
    StatusHistoryView,
    TransitionRequest,
    User,
)
from fieldservice.routers.dependencies import get_acting_user, get_manager, require_roles
from fieldservice.services.job_manager import JobManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("", response_model=JobListResponse)
def list_jobs(
    status: JobStatus | None = Query(default=None, description="Only jobs in this status"),
    assigned_technician: str | None = Query(default=None, description="Only jobs assigned to this technician"),
    user: User = Depends(get_acting_user),
    manager: JobManager = Depends(get_manager),
) -> JobListResponse:
    """List jobs visible to the caller; technicians only see their own."""
    jobs = manager.list_jobs(user, status=status, technician_id=assigned_technician)
    return JobListResponse(data=jobs, total=len(jobs))


@router.post("", response_model=JobResponse, status_code=201)
def create_job(
    fields: dict[str, Any] = Body(description="Job fields; title and customer_name are required"),
    user: User = Depends(require_roles(Role.ADMIN)),
    manager: JobManager = Depends(get_manager),
) -> JobResponse:
    """Create a job in TENTATIVE status."""
    job = manager.create_job(fields, creator_id=user.user_id)
    return JobResponse(data=job, message="Job created")


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: str,
    user: User = Depends(get_acting_user),
    manager: JobManager = Depends(get_manager),
) -> JobResponse:
    """Return one job; technicians may only read jobs assigned to them."""
    return JobResponse(data=manager.get_job_for_user(job_id, user))


@router.patch("/{job_id}/status", response_model=JobResponse)
def transition_status(
    job_id: str,
    request: TransitionRequest,
    user: User = Depends(get_acting_user),
    manager: JobManager = Depends(get_manager),
) -> JobResponse:
    """Move a job to the requested status.

    The state machine decides whether the caller's role may take the edge;
    technicians must additionally be the job's assignee.
    """
    job = manager.get_job(job_id)
    updated = manager.transition_status(job, request.status, user, request.notes)
    return JobResponse(data=updated, message=f"Status updated to {updated.status.value}")


@router.patch("/{job_id}/assign", response_model=JobResponse)
def assign_technician(
    job_id: str,
    request: AssignRequest,
    user: User = Depends(require_roles(Role.ADMIN)),
    manager: JobManager = Depends(get_manager),
) -> JobResponse:
    """Assign a technician to a CONFIRMED job, moving it to ASSIGNED."""
    job = manager.get_job(job_id)
    updated = manager.assign_technician(job, request.technician_id, user, request.notes)
    return JobResponse(data=updated, message="Technician assigned")


@router.patch("/{job_id}/reassign", response_model=JobResponse)
def reassign_technician(
    job_id: str,
    request: AssignRequest,
    user: User = Depends(require_roles(Role.ADMIN)),
    manager: JobManager = Depends(get_manager),
) -> JobResponse:
    """Hand an active job to another technician and reset it to ASSIGNED."""
    job = manager.get_job(job_id)
    updated = manager.reassign_technician(job, request.technician_id, user, request.notes)
    return JobResponse(data=updated, message="Technician reassigned")


@router.put("/{job_id}", response_model=JobResponse)
def update_job(
    job_id: str,
    fields: dict[str, Any] = Body(description="Business fields to change"),
    user: User = Depends(require_roles(Role.ADMIN, Role.OFFICE_MANAGER)),
    manager: JobManager = Depends(get_manager),
) -> JobResponse:
    """Edit non-status fields of a job."""
    job = manager.get_job(job_id)
    updated = manager.update_job_details(job, fields)
    logger.info("User %s edited job %s", user.user_id, job_id)
    return JobResponse(data=updated, message="Job updated")


@router.delete("/{job_id}", response_model=JobResponse)
def delete_job(
    job_id: str,
    user: User = Depends(require_roles(Role.ADMIN)),
    manager: JobManager = Depends(get_manager),
) -> JobResponse:
    """Administratively delete a job."""
    job = manager.delete_job(job_id)
    logger.info("User %s deleted job %s", user.user_id, job_id)
    return JobResponse(data=job, message="Job deleted")


@router.get("/{job_id}/history", response_model=StatusHistoryView)
def get_history(
    job_id: str,
    user: User = Depends(get_acting_user),
    manager: JobManager = Depends(get_manager),
) -> StatusHistoryView:
    """Return the job's current status and its ordered audit trail."""
    return manager.get_status_history(job_id, user)
