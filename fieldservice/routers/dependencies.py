"""Shared router dependencies -- service wiring, caller identity, and role gates.

``main.create_app`` wires the application-wide ``JobManager`` and
``UserDirectory`` in here once; every router pulls them through the getters.

The caller is identified by the ``X-User-Id`` header.  Issuing and verifying
credentials is left to whatever sits in front of this service.
"""

from collections.abc import Callable

from fastapi import Depends, Header, HTTPException

from fieldservice.models import Role, User
from fieldservice.services.job_manager import JobManager
from fieldservice.services.user_directory import UserDirectory

_job_manager: JobManager | None = None
_user_directory: UserDirectory | None = None


def set_services(manager: JobManager, users: UserDirectory) -> None:
    """Wire the shared services into the router layer.

    Args:
        manager: The application-wide ``JobManager`` instance.
        users: The application-wide ``UserDirectory`` instance.
    """
    global _job_manager, _user_directory
    _job_manager = manager
    _user_directory = users


def get_manager() -> JobManager:
    """Return the wired ``JobManager`` or raise if not initialised.

    Raises:
        HTTPException: If the manager has not been set yet.
    """
    if _job_manager is None:
        raise HTTPException(status_code=503, detail="JobManager not initialised")
    return _job_manager


def get_users() -> UserDirectory:
    """Return the wired ``UserDirectory`` or raise if not initialised.

    Raises:
        HTTPException: If the directory has not been set yet.
    """
    if _user_directory is None:
        raise HTTPException(status_code=503, detail="UserDirectory not initialised")
    return _user_directory


def get_acting_user(
    x_user_id: str | None = Header(default=None, description="Identifier of the calling user"),
    users: UserDirectory = Depends(get_users),
) -> User:
    """Resolve the calling user from the ``X-User-Id`` header.

    Raises:
        HTTPException: 401 when the header is missing or names no known user.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return users.get_user(x_user_id)
    except KeyError as exc:
        raise HTTPException(status_code=401, detail=f"Unknown user {x_user_id!r}") from exc


def require_roles(*allowed_roles: Role) -> Callable[..., User]:
    """Build a dependency that admits only callers holding one of *allowed_roles*.

    Returns:
        A FastAPI dependency yielding the acting ``User``.
    """

    def _dependency(user: User = Depends(get_acting_user)) -> User:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Access denied. Required roles: {', '.join(r.value for r in allowed_roles)}",
            )
        return user

    return _dependency
