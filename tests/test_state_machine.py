from __future__ import annotations

import pytest

from app.domain.state_machine import (
    REASON_ALREADY_ASSIGNED,
    REASON_MANUAL_ASSIGNED,
    REASON_NO_ACTIVE_ASSIGNMENT,
    AssetStatus,
    TransitionAllowed,
    TransitionRejected,
    assign_transition,
    manual_status_transition,
    return_transition,
)


@pytest.mark.parametrize("current", [AssetStatus.AVAILABLE, AssetStatus.RETURNED])
def test_assign_from_assignable_status(current: AssetStatus) -> None:
    assert assign_transition(current, has_active_assignment=False) == TransitionAllowed(AssetStatus.ASSIGNED)


def test_assign_rejected_when_already_held() -> None:
    assert assign_transition(AssetStatus.ASSIGNED, has_active_assignment=True) == TransitionRejected(
        REASON_ALREADY_ASSIGNED
    )
    # An open ledger row wins even if the status column drifted.
    assert assign_transition(AssetStatus.AVAILABLE, has_active_assignment=True) == TransitionRejected(
        REASON_ALREADY_ASSIGNED
    )


@pytest.mark.parametrize("current", [AssetStatus.DAMAGED, AssetStatus.LOST, AssetStatus.RETIRED])
def test_assign_rejected_from_terminal_like_status(current: AssetStatus) -> None:
    result = assign_transition(current, has_active_assignment=False)
    assert isinstance(result, TransitionRejected)
    assert current.value in result.reason


@pytest.mark.parametrize(
    "destination",
    [AssetStatus.AVAILABLE, AssetStatus.DAMAGED, AssetStatus.RETIRED, AssetStatus.LOST],
)
def test_return_to_any_destination(destination: AssetStatus) -> None:
    result = return_transition(AssetStatus.ASSIGNED, destination, has_active_assignment=True)
    assert result == TransitionAllowed(destination)


def test_return_requires_active_assignment() -> None:
    result = return_transition(AssetStatus.ASSIGNED, AssetStatus.AVAILABLE, has_active_assignment=False)
    assert result == TransitionRejected(REASON_NO_ACTIVE_ASSIGNMENT)


def test_return_rejects_illegal_destination() -> None:
    for destination in (AssetStatus.ASSIGNED, AssetStatus.RETURNED):
        result = return_transition(AssetStatus.ASSIGNED, destination, has_active_assignment=True)
        assert isinstance(result, TransitionRejected)


def test_manual_status_edits() -> None:
    assert manual_status_transition(AssetStatus.AVAILABLE, AssetStatus.ASSIGNED) == TransitionRejected(
        REASON_MANUAL_ASSIGNED
    )
    assert manual_status_transition(AssetStatus.ASSIGNED, AssetStatus.ASSIGNED) == TransitionAllowed(
        AssetStatus.ASSIGNED
    )
    assert manual_status_transition(AssetStatus.RETIRED, AssetStatus.AVAILABLE) == TransitionAllowed(
        AssetStatus.AVAILABLE
    )
    assert manual_status_transition(AssetStatus.AVAILABLE, AssetStatus.RETURNED) == TransitionAllowed(
        AssetStatus.RETURNED
    )
