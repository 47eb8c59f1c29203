from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class AssetStatus(StrEnum):
    AVAILABLE = "Available"
    ASSIGNED = "Assigned"
    RETURNED = "Returned"
    DAMAGED = "Damaged"
    LOST = "Lost"
    RETIRED = "Retired"


ASSIGNABLE_STATUSES: frozenset[AssetStatus] = frozenset({AssetStatus.AVAILABLE, AssetStatus.RETURNED})

RETURN_DESTINATIONS: frozenset[AssetStatus] = frozenset(
    {
        AssetStatus.AVAILABLE,
        AssetStatus.DAMAGED,
        AssetStatus.RETIRED,
        AssetStatus.LOST,
    }
)

REASON_ALREADY_ASSIGNED = "already assigned"
REASON_NO_ACTIVE_ASSIGNMENT = "asset has no active assignment"
REASON_MANUAL_ASSIGNED = "status Assigned can only be reached by assigning the asset"


@dataclass(frozen=True)
class TransitionAllowed:
    status: AssetStatus


@dataclass(frozen=True)
class TransitionRejected:
    reason: str


TransitionResult = TransitionAllowed | TransitionRejected


def assign_transition(current: AssetStatus, *, has_active_assignment: bool) -> TransitionResult:
    if has_active_assignment or current == AssetStatus.ASSIGNED:
        return TransitionRejected(REASON_ALREADY_ASSIGNED)
    if current not in ASSIGNABLE_STATUSES:
        return TransitionRejected(f"asset in status {current} cannot be assigned")
    return TransitionAllowed(AssetStatus.ASSIGNED)


def return_transition(
    current: AssetStatus,
    destination: AssetStatus,
    *,
    has_active_assignment: bool,
) -> TransitionResult:
    """Close custody and move to a caller-chosen destination.

    The return condition is deliberately not an input: any return destination
    is accepted regardless of the condition the asset came back in.
    """
    if not has_active_assignment:
        return TransitionRejected(REASON_NO_ACTIVE_ASSIGNMENT)
    if destination not in RETURN_DESTINATIONS:
        return TransitionRejected(f"illegal return destination: {destination}")
    return TransitionAllowed(destination)


def manual_status_transition(current: AssetStatus, target: AssetStatus) -> TransitionResult:
    if target == AssetStatus.ASSIGNED and current != AssetStatus.ASSIGNED:
        return TransitionRejected(REASON_MANUAL_ASSIGNED)
    return TransitionAllowed(target)
