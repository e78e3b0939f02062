"""Shared fixtures: a user directory with one user per role and managers for both workflows."""

from pathlib import Path

import pytest

from fieldservice.models import Role, User
from fieldservice.services.job_manager import JobManager
from fieldservice.services.job_store import JobStore
from fieldservice.services.user_directory import UserDirectory
from fieldservice.state_machine import StateMachine
from fieldservice.transition_policy import DIRECT_POLICY, DISPATCH_POLICY

VALID_JOB_FIELDS = {
    "title": "Replace boiler valve",
    "customer_name": "Ada Lovelace",
    "customer_email": "ada@example.com",
    "address": "12 Analytical Row",
    "scheduled_date": "2026-11-02T09:30:00Z",
    "estimated_cost": 180.0,
}


@pytest.fixture()
def job_fields() -> dict[str, object]:
    """A fresh copy of valid creation fields."""
    return dict(VALID_JOB_FIELDS)


@pytest.fixture()
def users() -> UserDirectory:
    """Directory holding an admin, an office manager, and two technicians.

    Returns:
        A populated ``UserDirectory``.
    """
    directory = UserDirectory()
    directory.add_user("Alice Admin", Role.ADMIN, user_id="admin")
    directory.add_user("Olive Office", Role.OFFICE_MANAGER, user_id="om")
    directory.add_user("Tom Tech", Role.TECHNICIAN, user_id="t1")
    directory.add_user("Tina Tech", Role.TECHNICIAN, user_id="t2")
    return directory


@pytest.fixture()
def admin(users: UserDirectory) -> User:
    """The administrator."""
    return users.get_user("admin")


@pytest.fixture()
def office_manager(users: UserDirectory) -> User:
    """The office manager."""
    return users.get_user("om")


@pytest.fixture()
def tech1(users: UserDirectory) -> User:
    """The first technician."""
    return users.get_user("t1")


@pytest.fixture()
def tech2(users: UserDirectory) -> User:
    """The second technician."""
    return users.get_user("t2")


@pytest.fixture()
def manager(users: UserDirectory) -> JobManager:
    """A ``JobManager`` enforcing the direct workflow, in memory only.

    Args:
        users: Fixture-provided user directory.

    Returns:
        A fresh ``JobManager`` instance.
    """
    return JobManager(JobStore(), users, StateMachine(DIRECT_POLICY))


@pytest.fixture()
def dispatch_manager(users: UserDirectory, tmp_path: Path) -> JobManager:
    """A ``JobManager`` enforcing the dispatch workflow with snapshots on disk.

    Args:
        users: Fixture-provided user directory.
        tmp_path: Pytest-provided temporary directory.

    Returns:
        A fresh ``JobManager`` instance.
    """
    return JobManager(JobStore(data_dir=tmp_path), users, StateMachine(DISPATCH_POLICY))
