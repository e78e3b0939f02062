"""Declarative job status transition tables.

A policy maps every status to the statuses reachable from it and, for each
edge, the roles allowed to take it.  Two workflow shapes exist in the field:

- ``direct``: technicians start work straight from ASSIGNED.
- ``dispatch``: an office manager dispatches the job (with notes) before the
  technician can start, adding the DISPATCHED status.

Policies are built once at import and exposed through read-only mappings.
"""

import enum
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from fieldservice.models import JobStatus, Role


class WorkflowVariant(enum.StrEnum):
    """Selectable transition table shapes."""

    DIRECT = "direct"
    DISPATCH = "dispatch"


class TransitionPolicy:
    """Immutable transition table for one workflow variant.

    Attributes:
        variant: The workflow this table describes.
        statuses: Statuses taking part in the workflow, in workflow order.
        edges: ``from_status -> {to_status -> frozenset(roles)}``.
        notes_required: Edges that must carry a non-blank note.
    """

    __slots__ = ("variant", "statuses", "edges", "notes_required")

    def __init__(
        self,
        variant: WorkflowVariant,
        rules: Mapping[JobStatus, Mapping[JobStatus, Iterable[Role]]],
        notes_required: Iterable[tuple[JobStatus, JobStatus]] = (),
    ) -> None:
        """Freeze *rules* into a policy.

        Args:
            variant: Name of the workflow.
            rules: Outgoing edges per status.  Every status in the workflow
                must appear as a key; terminal statuses map to ``{}``.
            notes_required: ``(from, to)`` pairs that require notes.

        Raises:
            ValueError: If a status maps to itself, an edge targets a status
                outside the workflow, an edge has no roles, or a notes-required
                pair is not an edge.
        """
        frozen: dict[JobStatus, Mapping[JobStatus, frozenset[Role]]] = {}
        for current, targets in rules.items():
            row: dict[JobStatus, frozenset[Role]] = {}
            for target, roles in targets.items():
                if target == current:
                    raise ValueError(f"Status {current} cannot transition to itself")
                if target not in rules:
                    raise ValueError(f"Edge {current} -> {target} targets a status outside the workflow")
                row[target] = frozenset(roles)
                if not row[target]:
                    raise ValueError(f"Edge {current} -> {target} has no authorized roles")
            frozen[current] = MappingProxyType(row)

        required = frozenset(notes_required)
        for current, target in required:
            if target not in frozen.get(current, {}):
                raise ValueError(f"Notes requirement on missing edge {current} -> {target}")

        object.__setattr__(self, "variant", variant)
        object.__setattr__(self, "statuses", tuple(s for s in JobStatus if s in frozen))
        object.__setattr__(self, "edges", MappingProxyType(frozen))
        object.__setattr__(self, "notes_required", required)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        return f"TransitionPolicy(variant={self.variant.value!r})"

    @property
    def terminal_statuses(self) -> tuple[JobStatus, ...]:
        """Statuses with no outgoing edges, in workflow order."""
        return tuple(s for s in self.statuses if not self.edges[s])


DIRECT_POLICY = TransitionPolicy(
    WorkflowVariant.DIRECT,
    {
        JobStatus.TENTATIVE: {JobStatus.CONFIRMED: [Role.ADMIN]},
        JobStatus.CONFIRMED: {JobStatus.ASSIGNED: [Role.ADMIN]},
        JobStatus.ASSIGNED: {JobStatus.IN_PROGRESS: [Role.TECHNICIAN]},
        JobStatus.IN_PROGRESS: {JobStatus.COMPLETED: [Role.TECHNICIAN]},
        JobStatus.COMPLETED: {JobStatus.BILLED: [Role.OFFICE_MANAGER]},
        JobStatus.BILLED: {},
    },
)

DISPATCH_POLICY = TransitionPolicy(
    WorkflowVariant.DISPATCH,
    {
        JobStatus.TENTATIVE: {JobStatus.CONFIRMED: [Role.ADMIN]},
        JobStatus.CONFIRMED: {JobStatus.ASSIGNED: [Role.ADMIN]},
        JobStatus.ASSIGNED: {JobStatus.DISPATCHED: [Role.OFFICE_MANAGER]},
        JobStatus.DISPATCHED: {JobStatus.IN_PROGRESS: [Role.TECHNICIAN]},
        JobStatus.IN_PROGRESS: {JobStatus.COMPLETED: [Role.TECHNICIAN]},
        JobStatus.COMPLETED: {JobStatus.BILLED: [Role.OFFICE_MANAGER]},
        JobStatus.BILLED: {},
    },
    notes_required=[(JobStatus.ASSIGNED, JobStatus.DISPATCHED)],
)

_POLICIES: Mapping[WorkflowVariant, TransitionPolicy] = MappingProxyType(
    {
        WorkflowVariant.DIRECT: DIRECT_POLICY,
        WorkflowVariant.DISPATCH: DISPATCH_POLICY,
    }
)


def get_policy(variant: WorkflowVariant | str) -> TransitionPolicy:
    """Return the built-in policy for *variant*.

    Args:
        variant: A ``WorkflowVariant`` or its string value.

    Returns:
        The matching ``TransitionPolicy``.

    Raises:
        ValueError: If *variant* is not a known workflow.
    """
    return _POLICIES[WorkflowVariant(variant)]
