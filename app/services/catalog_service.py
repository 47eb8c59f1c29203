from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from sqlmodel import Session, col, select

from app.domain.models import (
    Asset,
    AssetDetailRead,
    AssetListItemRead,
    AssetRead,
    AssetSummaryRead,
    AssignmentOrder,
    AssignmentRead,
    CurrentAssignmentView,
    Employee,
    EmployeeHoldingRead,
)
from app.domain.resolver import ResolvedAssignment, resolve_current_assignment, resolve_many
from app.domain.state_machine import AssetStatus
from app.infra.db import get_engine
from app.services.asset_store import AssetStore, translate_store_errors
from app.services.assignment_ledger import AssignmentLedger

EXPORT_COLUMNS = (
    "Asset Code",
    "Name",
    "Category",
    "Status",
    "Assigned To",
    "Assigned Date",
    "Condition",
    "Serial Number",
    "Model",
    "Purchase Date",
    "Purchase Price",
)
EMPTY_CELL = "-"


def _format_date(value: date | datetime | None) -> str:
    if value is None:
        return EMPTY_CELL
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def _holder_label(view: CurrentAssignmentView | None) -> str:
    if view is None:
        return "Unassigned"
    if view.is_active:
        return view.employee_display_name or view.employee_id
    return f"Returned from {view.employee_display_name or 'Unknown'}"


class AssetCatalogService:
    """Read-only views over assets and their custody ledger."""

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _display_names(self, session: Session, employee_ids: Iterable[str]) -> dict[str, str]:
        ids = sorted(set(employee_ids))
        if not ids:
            return {}
        rows = session.exec(select(Employee).where(col(Employee.id).in_(ids))).all()
        return {row.id: row.display_name for row in rows}

    def _to_view(
        self,
        resolved: ResolvedAssignment | None,
        names: dict[str, str],
    ) -> CurrentAssignmentView | None:
        if resolved is None:
            return None
        record = AssignmentRead.model_validate(resolved.record)
        return CurrentAssignmentView(
            **record.model_dump(),
            is_active=resolved.is_active,
            employee_display_name=names.get(record.employee_id),
        )

    def _list_items(self, session: Session, assets: list[Asset]) -> list[AssetListItemRead]:
        records = AssignmentLedger(session).for_assets(asset.id for asset in assets)
        resolved = resolve_many({asset.id: asset.status for asset in assets}, records)
        names = self._display_names(
            session,
            (item.record.employee_id for item in resolved.values() if item is not None),
        )
        return [
            AssetListItemRead(
                **AssetRead.model_validate(asset).model_dump(),
                current_assignment=self._to_view(resolved[asset.id], names),
            )
            for asset in assets
        ]

    def fetch_assets(
        self,
        *,
        status: AssetStatus | None = None,
        category: str | None = None,
        search: str | None = None,
    ) -> list[AssetListItemRead]:
        with self._session() as session, translate_store_errors():
            assets = AssetStore(session).query(status=status, category=category, search=search)
            return self._list_items(session, assets)

    def get_asset(self, asset_id: str, order: AssignmentOrder = AssignmentOrder.ASC) -> AssetDetailRead:
        with self._session() as session, translate_store_errors():
            asset = AssetStore(session).get(asset_id)
            history = AssignmentLedger(session).history_for(asset.id, order)
            resolved = resolve_current_assignment(asset.status, history)
            names = self._display_names(session, [resolved.record.employee_id] if resolved else [])
            return AssetDetailRead(
                **AssetRead.model_validate(asset).model_dump(),
                current_assignment=self._to_view(resolved, names),
                assignments=[AssignmentRead.model_validate(row) for row in history],
            )

    def summarize(self) -> AssetSummaryRead:
        with self._session() as session, translate_store_errors():
            store = AssetStore(session)
            by_status = {item.value: 0 for item in AssetStatus}
            by_status.update(store.count_by_status())
            by_category = store.count_by_category()
        return AssetSummaryRead(
            total=sum(by_status.values()),
            by_status=by_status,
            by_category=dict(sorted(by_category.items())),
        )

    def export_rows(
        self,
        *,
        status: AssetStatus | None = None,
        category: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        """Flatten the asset list into spreadsheet-style rows for report renderers."""
        rows: list[dict[str, Any]] = []
        for item in self.fetch_assets(status=status, category=category, search=search):
            view = item.current_assignment
            values = (
                item.asset_code,
                item.name,
                item.category,
                item.status.value,
                _holder_label(view),
                _format_date(view.assigned_at if view is not None else None),
                item.condition or EMPTY_CELL,
                item.serial_number or EMPTY_CELL,
                item.model or EMPTY_CELL,
                _format_date(item.purchase_date),
                item.purchase_cost if item.purchase_cost is not None else EMPTY_CELL,
            )
            rows.append(dict(zip(EXPORT_COLUMNS, values, strict=True)))
        return rows

    def employee_holdings(self, employee_id: str) -> list[EmployeeHoldingRead]:
        with self._session() as session, translate_store_errors():
            records = AssignmentLedger(session).for_employee(employee_id)
            assets = {asset.id: asset for asset in AssetStore(session).get_many({row.asset_id for row in records})}
            return [
                EmployeeHoldingRead(
                    **AssignmentRead.model_validate(row).model_dump(),
                    asset=AssetRead.model_validate(assets[row.asset_id]),
                )
                for row in records
                if row.asset_id in assets
            ]
