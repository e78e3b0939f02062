"""Health-check endpoint.

Reports service status, the active workflow variant, and how many jobs are
held.  This is the first endpoint a client should hit to verify connectivity.
"""

from fastapi import APIRouter, Depends

from fieldservice.models import HealthResponse
from fieldservice.routers.dependencies import get_manager
from fieldservice.services.job_manager import JobManager

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(manager: JobManager = Depends(get_manager)) -> HealthResponse:
    """Return service health status.

    Returns:
        A ``HealthResponse`` with the workflow variant and job count.
    """
    return HealthResponse(
        status="ok",
        workflow=manager.state_machine.policy.variant.value,
        job_count=len(manager.store),
    )
