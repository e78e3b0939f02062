"""User directory -- in-memory registry of the people who act on jobs.

Authentication is handled elsewhere; this registry only answers "who is this
user id and what role do they hold", which the orchestrator needs for
technician lookups and the HTTP layer needs to resolve the caller.
"""

import logging
import threading
import uuid

from fieldservice.models import Role, User

logger = logging.getLogger(__name__)


class UserDirectory:
    """Thread-safe mapping of user id to ``User``."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()

    def add_user(self, name: str, role: Role, email: str = "", user_id: str = "") -> User:
        """Register a new user.

        Args:
            name: Display name.
            role: The user's single role.
            email: Optional contact email.
            user_id: Explicit identifier; a random one is generated when empty.

        Returns:
            The created ``User``.

        Raises:
            ValueError: If *user_id* is already taken.
        """
        user = User(user_id=user_id or uuid.uuid4().hex[:12], name=name, email=email, role=role)
        with self._lock:
            if user.user_id in self._users:
                raise ValueError(f"User {user.user_id!r} already exists")
            self._users[user.user_id] = user
        logger.info("Registered %s user %s (%s)", role.value, user.user_id, name)
        return user

    def get_user(self, user_id: str) -> User:
        """Retrieve a user by id.

        Raises:
            KeyError: If no user with the given ID exists.
        """
        if user_id not in self._users:
            raise KeyError(f"User {user_id!r} not found")
        return self._users[user_id]

    def list_users(self, role: Role | None = None) -> list[User]:
        """Return all users, optionally restricted to one role, sorted by name."""
        with self._lock:
            users = list(self._users.values())
        if role is not None:
            users = [u for u in users if u.role == role]
        return sorted(users, key=lambda u: u.name)

    def list_technicians(self) -> list[User]:
        """Return every user holding the TECHNICIAN role."""
        return self.list_users(Role.TECHNICIAN)
