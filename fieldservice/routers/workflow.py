"""State machine diagnostics endpoint.

Dumps the active transition table together with the next statuses the
calling user's role may choose from each status, so clients can render the
right actions without hard-coding the workflow.
"""

from fastapi import APIRouter, Depends

from fieldservice.models import StateMachineResponse, User
from fieldservice.routers.dependencies import get_acting_user, get_manager
from fieldservice.services.job_manager import JobManager

router = APIRouter(tags=["workflow"])


@router.get("/state-machine", response_model=StateMachineResponse)
async def describe_state_machine(
    user: User = Depends(get_acting_user),
    manager: JobManager = Depends(get_manager),
) -> StateMachineResponse:
    """Describe every status, its outgoing edges, and the caller's options."""
    machine = manager.state_machine
    return StateMachineResponse(
        workflow=machine.policy.variant.value,
        statuses=machine.describe(),
        role=user.role,
        next_statuses_for_role=machine.next_statuses_by_role(user.role),
    )
