from __future__ import annotations

from collections.abc import Iterable

from sqlmodel import Session, col, select

from app.domain.models import AssetAssignment, AssignmentOrder, now_utc
from app.services.errors import NotFoundError, PreconditionViolationError


class AssignmentLedger:
    """Append/close store of custody intervals.

    The ledger never touches the asset row and does not police the
    one-open-row-per-asset rule; callers check ``active_for`` before ``append``.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(
        self,
        asset_id: str,
        employee_id: str,
        condition: str | None,
        remarks: str | None,
        actor_id: str | None = None,
    ) -> AssetAssignment:
        record = AssetAssignment(
            asset_id=asset_id,
            employee_id=employee_id,
            assigned_at=now_utc(),
            assigned_by=actor_id,
            condition_on_assignment=condition,
            remarks=remarks,
        )
        self._session.add(record)
        return record

    def close(
        self,
        assignment_id: str,
        condition: str | None,
        remarks: str | None = None,
    ) -> AssetAssignment:
        record = self.get(assignment_id)
        if record.returned_at is not None:
            raise PreconditionViolationError("assignment already closed")
        record.returned_at = now_utc()
        record.condition_on_return = condition
        record.return_remarks = remarks
        self._session.add(record)
        return record

    def find(self, assignment_id: str) -> AssetAssignment | None:
        return self._session.get(AssetAssignment, assignment_id)

    def get(self, assignment_id: str) -> AssetAssignment:
        record = self.find(assignment_id)
        if record is None:
            raise NotFoundError("assignment not found")
        return record

    def active_for(self, asset_id: str) -> AssetAssignment | None:
        statement = (
            select(AssetAssignment)
            .where(AssetAssignment.asset_id == asset_id)
            .where(col(AssetAssignment.returned_at).is_(None))
            .order_by(col(AssetAssignment.assigned_at).desc(), col(AssetAssignment.id).desc())
        )
        return self._session.exec(statement).first()

    def history_for(
        self,
        asset_id: str,
        order: AssignmentOrder = AssignmentOrder.ASC,
    ) -> list[AssetAssignment]:
        if order == AssignmentOrder.ASC:
            ordering = (col(AssetAssignment.assigned_at).asc(), col(AssetAssignment.id).asc())
        else:
            ordering = (col(AssetAssignment.assigned_at).desc(), col(AssetAssignment.id).desc())
        statement = select(AssetAssignment).where(AssetAssignment.asset_id == asset_id).order_by(*ordering)
        return list(self._session.exec(statement).all())

    def for_assets(self, asset_ids: Iterable[str]) -> list[AssetAssignment]:
        ids = list(asset_ids)
        if not ids:
            return []
        statement = select(AssetAssignment).where(col(AssetAssignment.asset_id).in_(ids))
        return list(self._session.exec(statement).all())

    def for_employee(self, employee_id: str) -> list[AssetAssignment]:
        statement = (
            select(AssetAssignment)
            .where(AssetAssignment.employee_id == employee_id)
            .order_by(col(AssetAssignment.assigned_at).desc(), col(AssetAssignment.id).desc())
        )
        return list(self._session.exec(statement).all())

    def delete_for_asset(self, asset_id: str) -> int:
        rows = self._session.exec(select(AssetAssignment).where(AssetAssignment.asset_id == asset_id)).all()
        for row in rows:
            self._session.delete(row)
        return len(rows)
