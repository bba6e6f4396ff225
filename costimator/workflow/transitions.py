"""Workflow transition tables for estimates and takeoff versions.

Each table maps an action to the statuses it may start from and the status
it ends in. ``check_transition`` is the only place legality is decided.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from costimator.errors import InvalidTransitionError
from costimator.models import EstimateStatus, VersionStatus


@dataclass(frozen=True)
class Transition:
    sources: frozenset[Enum]
    target: Enum


ESTIMATE_TRANSITIONS: dict[str, Transition] = {
    "submit": Transition(frozenset({EstimateStatus.DRAFT}), EstimateStatus.SUBMITTED),
    "approve": Transition(frozenset({EstimateStatus.SUBMITTED}), EstimateStatus.APPROVED),
    "reject": Transition(frozenset({EstimateStatus.SUBMITTED}), EstimateStatus.REJECTED),
}

VERSION_TRANSITIONS: dict[str, Transition] = {
    "submit": Transition(frozenset({VersionStatus.DRAFT}), VersionStatus.SUBMITTED),
    "approve": Transition(frozenset({VersionStatus.SUBMITTED}), VersionStatus.APPROVED),
    "reject": Transition(frozenset({VersionStatus.SUBMITTED}), VersionStatus.REJECTED),
    "supersede": Transition(frozenset({VersionStatus.APPROVED}), VersionStatus.SUPERSEDED),
}


def check_transition(
    table: dict[str, Transition],
    action: str,
    current_status: str | Enum,
    entity: str | None = None,
) -> Enum:
    """Return the target status for ``action`` from ``current_status``.

    Raises:
        InvalidTransitionError: Unknown action or illegal source status
    """
    status_value = current_status.value if isinstance(current_status, Enum) else current_status

    transition = table.get(action)
    if transition is None or status_value not in {s.value for s in transition.sources}:
        raise InvalidTransitionError(action, status_value, entity)

    return transition.target


def allowed_actions(table: dict[str, Transition], current_status: str | Enum) -> list[str]:
    """Actions that are legal from ``current_status`` (for menus/CLI hints)."""
    status_value = current_status.value if isinstance(current_status, Enum) else current_status
    return [
        action
        for action, transition in table.items()
        if status_value in {s.value for s in transition.sources}
    ]
