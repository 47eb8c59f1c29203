"""Derive the "current holder" of an asset from its ledger rows.

The active record is the open row (``returned_at is None``) with the greatest
``(assigned_at, id)`` key, so two rows stamped with the same instant always
resolve to the same winner. When nothing is open and the asset sits in
``Returned``, the most recently closed row is exposed as the last known holder
with ``is_active=False``. That fallback exists for display only; write paths
ask the ledger for the active row directly and never go through here.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from app.domain.state_machine import AssetStatus


class LedgerRow(Protocol):
    id: str
    asset_id: str
    assigned_at: datetime
    returned_at: datetime | None


@dataclass(frozen=True)
class ResolvedAssignment:
    record: LedgerRow
    is_active: bool


def _active_key(row: LedgerRow) -> tuple[datetime, str]:
    return (row.assigned_at, row.id)


def _closed_key(row: LedgerRow) -> tuple[datetime, datetime, str]:
    return (row.returned_at or row.assigned_at, row.assigned_at, row.id)


def resolve_current_assignment(
    status: AssetStatus,
    records: Iterable[LedgerRow],
) -> ResolvedAssignment | None:
    rows = list(records)
    active = [row for row in rows if row.returned_at is None]
    if active:
        return ResolvedAssignment(record=max(active, key=_active_key), is_active=True)
    if status != AssetStatus.RETURNED:
        return None
    closed = [row for row in rows if row.returned_at is not None]
    if not closed:
        return None
    return ResolvedAssignment(record=max(closed, key=_closed_key), is_active=False)


def resolve_many(
    statuses: Mapping[str, AssetStatus],
    records: Iterable[LedgerRow],
) -> dict[str, ResolvedAssignment | None]:
    grouped: dict[str, list[LedgerRow]] = defaultdict(list)
    for row in records:
        grouped[row.asset_id].append(row)
    return {
        asset_id: resolve_current_assignment(status, grouped.get(asset_id, []))
        for asset_id, status in statuses.items()
    }
