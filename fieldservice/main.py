"""FastAPI application entry point for the field-service job tracker.

``create_app`` builds the transition policy, state machine, job store, and user
directory from ``FieldServiceSettings``, wires them into the routers, and maps
``JobServiceError`` causes to HTTP status codes.  The server is started via ``uvicorn``.
"""

import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldservice.config import FieldServiceSettings
from fieldservice.errors import ErrorCause, JobServiceError
from fieldservice.models import Role
from fieldservice.routers import dependencies, health, jobs, users, workflow
from fieldservice.services.job_manager import JobManager
from fieldservice.services.job_store import JobStore
from fieldservice.services.user_directory import UserDirectory
from fieldservice.state_machine import StateMachine
from fieldservice.transition_policy import get_policy

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

HTTP_STATUS_BY_CAUSE: dict[ErrorCause, int] = {
    ErrorCause.SAME_STATUS: 409,
    ErrorCause.NO_SUCH_EDGE: 409,
    ErrorCause.WRONG_STATUS_FOR_ASSIGN: 409,
    ErrorCause.WRONG_STATUS_FOR_REASSIGN: 409,
    ErrorCause.CONCURRENCY_CONFLICT: 409,
    ErrorCause.ROLE_NOT_AUTHORIZED: 403,
    ErrorCause.NOT_ASSIGNED: 403,
    ErrorCause.NOT_AUTHORIZED: 403,
    ErrorCause.NOT_FOUND: 404,
    ErrorCause.UNKNOWN_TECHNICIAN: 404,
    ErrorCause.WRONG_ROLE: 400,
    ErrorCause.VALIDATION_ERROR: 400,
    ErrorCause.NOTES_REQUIRED: 400,
    ErrorCause.PROTECTED_FIELD: 400,
    ErrorCause.SAME_TECHNICIAN: 400,
}


async def _job_service_error_handler(request: Request, exc: JobServiceError) -> JSONResponse:
    """Render a cause-tagged job error as a structured JSON response."""
    status_code = HTTP_STATUS_BY_CAUSE.get(exc.cause, 400)
    logger.info("%s %s rejected with %s: %s", request.method, request.url.path, exc.cause.value, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app(settings: FieldServiceSettings | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Args:
        settings: Configuration to use; loaded from the environment when omitted.

    Returns:
        A fully configured ``FastAPI`` application ready to serve.
    """
    settings = settings or FieldServiceSettings()
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title="Field Service Job Tracker",
        description="Job lifecycle and audit trail service for field-service teams",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(JobServiceError, _job_service_error_handler)

    policy = get_policy(settings.workflow)
    store = JobStore(data_dir=settings.data_dir)
    store.load()

    user_directory = UserDirectory()
    user_directory.add_user(
        settings.bootstrap_admin_name,
        Role.ADMIN,
        email=settings.bootstrap_admin_email,
        user_id=settings.bootstrap_admin_id,
    )

    # Shared job manager -- all routers reference the same instance
    job_manager = JobManager(
        store=store,
        users=user_directory,
        state_machine=StateMachine(policy),
        protected_fields_policy=settings.protected_fields_policy,
    )
    dependencies.set_services(job_manager, user_directory)

    app.include_router(health.router)
    app.include_router(jobs.router)
    app.include_router(users.router)
    app.include_router(workflow.router)

    logger.info(
        "Field service tracker initialised -- workflow=%s, data_dir=%s, protected_fields=%s",
        policy.variant.value,
        settings.data_dir,
        settings.protected_fields_policy,
    )
    return app


def main() -> None:
    """Start the Uvicorn server with settings from the environment.

    This is the CLI entry point (``python -m fieldservice.main``).
    """
    settings = FieldServiceSettings()
    logger.info("Starting field service tracker on %s:%d", settings.host, settings.port)
    uvicorn.run(
        "fieldservice.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
