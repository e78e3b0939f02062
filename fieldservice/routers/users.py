"""User endpoints -- register users and list technicians for assignment."""

from fastapi import APIRouter, Depends, HTTPException

from fieldservice.models import CreateUserRequest, Role, User, UsersResponse
from fieldservice.routers.dependencies import get_acting_user, get_users, require_roles
from fieldservice.services.user_directory import UserDirectory

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=User, status_code=201)
async def create_user(
    request: CreateUserRequest,
    _admin: User = Depends(require_roles(Role.ADMIN)),
    users: UserDirectory = Depends(get_users),
) -> User:
    """Register a user with a single role.

    Raises:
        HTTPException: 409 if the requested ``user_id`` is taken.
    """
    try:
        return users.add_user(request.name, request.role, email=request.email, user_id=request.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/technicians", response_model=UsersResponse)
async def list_technicians(
    _user: User = Depends(get_acting_user),
    users: UserDirectory = Depends(get_users),
) -> UsersResponse:
    """List every technician, e.g. to fill an assignment dropdown."""
    return UsersResponse(users=users.list_technicians())
