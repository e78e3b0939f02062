"""Application configuration backed by Pydantic Settings.

All values can be overridden via environment variables prefixed with ``FIELDSERVICE_``
(e.g. ``FIELDSERVICE_WORKFLOW=dispatch``) or via a ``.env`` file in the working directory.
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from fieldservice.transition_policy import WorkflowVariant


class FieldServiceSettings(BaseSettings):
    """Central configuration for the field-service job tracker.

    Attributes:
        host: Network interface to bind the HTTP server to.
        port: TCP port for the HTTP server.
        workflow: Which transition table to enforce -- ``direct`` (technicians
            start from ASSIGNED) or ``dispatch`` (office managers dispatch first).
        protected_fields_policy: What ``PUT /jobs/{id}`` does with lifecycle
            fields such as ``status``: ``reject`` the request or ``strip`` them.
        data_dir: When set, every job is also written to ``<data_dir>/<job_id>.json``
            and reloaded on startup.  ``None`` keeps jobs in memory only.
        bootstrap_admin_id: Identifier of the administrator created at startup.
        bootstrap_admin_name: Display name of that administrator.
        bootstrap_admin_email: Email of that administrator.
        log_level: Root logging level.
    """

    model_config = SettingsConfigDict(env_prefix="FIELDSERVICE_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"
    port: int = 8430
    workflow: WorkflowVariant = WorkflowVariant.DIRECT
    protected_fields_policy: Literal["reject", "strip"] = "reject"
    data_dir: Path | None = None
    bootstrap_admin_id: str = "admin"
    bootstrap_admin_name: str = "Administrator"
    bootstrap_admin_email: str = ""
    log_level: str = "INFO"
