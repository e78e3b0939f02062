"""Job status state machine with role-aware transition validation.

``StateMachine`` evaluates transition requests against an injected
``TransitionPolicy``.  Every method is a pure function of the policy and its
arguments: nothing here reads or writes job records.  A denied request is
reported as a ``Verdict`` tagged with the reason so callers can render an
actionable message, and ``Verdict.raise_for_denial`` turns it into an
``InvalidTransitionError`` for code paths that prefer exceptions.
"""

import enum

from pydantic import BaseModel, ConfigDict, Field

from fieldservice.errors import ErrorCause, PolicyViolationError
from fieldservice.models import JobStatus, Role, StatusDescription, TransitionEdge
from fieldservice.transition_policy import TransitionPolicy


class TransitionDenial(enum.StrEnum):
    """Reasons the evaluator can refuse a transition."""

    SAME_STATUS = "SAME_STATUS"
    NO_SUCH_EDGE = "NO_SUCH_EDGE"
    ROLE_NOT_AUTHORIZED = "ROLE_NOT_AUTHORIZED"


class Verdict(BaseModel):
    """Outcome of ``StateMachine.validate``.

    Attributes:
        allowed: ``True`` when the transition may proceed.
        denial: Why the transition was refused, ``None`` when allowed.
        reason: Human-readable explanation of the denial.
        current: Status the job is in.
        requested: Status the caller asked for.
        role: Role of the caller.
        valid_next_statuses: Every status reachable from ``current``.
        allowed_roles: Roles permitted on the requested edge, if it exists.
    """

    model_config = ConfigDict(frozen=True)

    allowed: bool
    denial: TransitionDenial | None = None
    reason: str = ""
    current: JobStatus
    requested: JobStatus
    role: Role
    valid_next_statuses: list[JobStatus] = Field(default_factory=list)
    allowed_roles: list[Role] = Field(default_factory=list)

    def raise_for_denial(self) -> None:
        """Raise ``InvalidTransitionError`` if this verdict is a denial.

        Raises:
            InvalidTransitionError: When ``allowed`` is ``False``.
        """
        if not self.allowed:
            raise InvalidTransitionError(self)


class InvalidTransitionError(PolicyViolationError):
    """Raised when a caller attempts a transition the policy forbids.

    Attributes:
        verdict: The denied verdict describing the attempt.
        current: The status the job is currently in.
        target: The status the caller attempted to transition to.
    """

    def __init__(self, verdict: Verdict) -> None:
        self.verdict = verdict
        self.current = verdict.current
        self.target = verdict.requested
        super().__init__(
            ErrorCause(verdict.denial.value),
            verdict.reason,
            {
                "current_status": verdict.current.value,
                "requested_status": verdict.requested.value,
                "role": verdict.role.value,
                "valid_next_statuses": [s.value for s in verdict.valid_next_statuses],
                "allowed_roles": [r.value for r in verdict.allowed_roles],
            },
        )


def _join(values: list[JobStatus] | list[Role]) -> str:
    return ", ".join(v.value for v in values)


class StateMachine:
    """Pure evaluator over one transition policy."""

    def __init__(self, policy: TransitionPolicy) -> None:
        self.policy = policy

    # ------------------------------------------------------------------
    # Edge queries
    # ------------------------------------------------------------------

    def is_valid_transition(self, current: JobStatus, requested: JobStatus) -> bool:
        """Return ``True`` when an edge ``current -> requested`` exists, whatever the role.

        Self-transitions are never valid.
        """
        if current == requested:
            return False
        return requested in self.policy.edges.get(current, {})

    def can_role_perform(self, current: JobStatus, requested: JobStatus, role: Role) -> bool:
        """Return ``True`` when the edge exists and *role* is authorized on it."""
        if not self.is_valid_transition(current, requested):
            return False
        return role in self.policy.edges[current][requested]

    def required_roles(self, current: JobStatus, requested: JobStatus) -> frozenset[Role] | None:
        """Return the roles authorized on ``current -> requested``, or ``None`` if there is no such edge."""
        if not self.is_valid_transition(current, requested):
            return None
        return self.policy.edges[current][requested]

    def requires_notes(self, current: JobStatus, requested: JobStatus) -> bool:
        """Return ``True`` when the edge must carry a non-blank note."""
        return (current, requested) in self.policy.notes_required

    def valid_next_statuses(self, current: JobStatus) -> frozenset[JobStatus]:
        """All statuses reachable from *current*; empty for terminal statuses."""
        return frozenset(self.policy.edges.get(current, {}))

    def valid_next_statuses_for_role(self, current: JobStatus, role: Role) -> frozenset[JobStatus]:
        """Statuses reachable from *current* through edges *role* is authorized on."""
        return frozenset(
            target for target, roles in self.policy.edges.get(current, {}).items() if role in roles
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, current: JobStatus, requested: JobStatus, role: Role) -> Verdict:
        """Decide whether *role* may move a job from *current* to *requested*.

        Checks run in order: same status, missing edge, role membership.

        Args:
            current: Status the job occupies right now.
            requested: The desired next status.
            role: Role of the acting user.

        Returns:
            A ``Verdict``; on denial ``denial`` and ``reason`` say why.
        """
        next_statuses = self._ordered(self.valid_next_statuses(current))
        base = {
            "current": current,
            "requested": requested,
            "role": role,
            "valid_next_statuses": next_statuses,
        }

        if current == requested:
            return Verdict(
                allowed=False,
                denial=TransitionDenial.SAME_STATUS,
                reason=f"Job is already in status {current.value}",
                **base,
            )

        if not self.is_valid_transition(current, requested):
            if current not in self.policy.edges:
                valid = f"none ({current.value} is not part of the {self.policy.variant.value} workflow)"
            elif next_statuses:
                valid = _join(next_statuses)
            else:
                valid = "none (terminal state)"
            return Verdict(
                allowed=False,
                denial=TransitionDenial.NO_SUCH_EDGE,
                reason=f"Invalid status transition from {current.value} to {requested.value}. Valid transitions: {valid}",
                **base,
            )

        allowed_roles = self._ordered_roles(self.policy.edges[current][requested])
        if role not in allowed_roles:
            return Verdict(
                allowed=False,
                denial=TransitionDenial.ROLE_NOT_AUTHORIZED,
                reason=(
                    f"Role {role.value} cannot transition job from {current.value} to {requested.value}. "
                    f"Allowed roles: {_join(allowed_roles)}"
                ),
                allowed_roles=allowed_roles,
                **base,
            )

        return Verdict(allowed=True, allowed_roles=allowed_roles, **base)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def describe(self) -> dict[JobStatus, StatusDescription]:
        """Dump every status of the workflow with its outgoing edges."""
        description: dict[JobStatus, StatusDescription] = {}
        for status in self.policy.statuses:
            row = self.policy.edges[status]
            edges = [
                TransitionEdge(
                    to=target,
                    allowed_roles=self._ordered_roles(row[target]),
                    requires_notes=self.requires_notes(status, target),
                )
                for target in self._ordered(row)
            ]
            description[status] = StatusDescription(edges=edges, is_terminal=not edges)
        return description

    def next_statuses_by_role(self, role: Role) -> dict[JobStatus, list[JobStatus]]:
        """Map every workflow status to the next statuses *role* may choose."""
        return {
            status: self._ordered(self.valid_next_statuses_for_role(status, role))
            for status in self.policy.statuses
        }

    def _ordered(self, statuses) -> list[JobStatus]:
        # Workflow order, not value order
        return [s for s in JobStatus if s in statuses]

    @staticmethod
    def _ordered_roles(roles) -> list[Role]:
        return [r for r in Role if r in roles]
