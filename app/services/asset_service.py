from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.domain.models import (
    Asset,
    AssetAssignRequest,
    AssetCreate,
    AssetReturnRequest,
    AssetUpdate,
    Employee,
)
from app.domain.state_machine import (
    REASON_ALREADY_ASSIGNED,
    RETURN_DESTINATIONS,
    TransitionRejected,
    assign_transition,
    manual_status_transition,
    return_transition,
)
from app.infra.db import get_engine
from app.infra.events import event_bus
from app.services.asset_store import AssetStore, translate_store_errors
from app.services.assignment_ledger import AssignmentLedger
from app.services.errors import (
    NotFoundError,
    PreconditionViolationError,
    ValidationError,
)

INITIAL_ASSIGNMENT_CONDITION = "New"
INITIAL_ASSIGNMENT_REMARKS = "Initial assignment upon creation"
DUPLICATE_CODE_REASON = "asset code already exists"
REQUIRED_TEXT_FIELDS = ("asset_code", "name", "category")


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class AssetService:
    """Lifecycle operations for a single asset.

    Each operation runs in its own session; the asset row, the ledger row and
    the domain event it touches are committed together or not at all.
    """

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _commit(self, session: Session, conflict_reason: str) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise PreconditionViolationError(conflict_reason) from exc

    def _stage_event(
        self,
        session: Session,
        event_type: str,
        payload: dict[str, Any],
        actor_id: str | None,
    ) -> None:
        event_bus.publish_dict(event_type, payload, actor_id=actor_id, session=session)

    def _ensure_employee(self, session: Session, employee_id: str) -> None:
        if session.get(Employee, employee_id) is None:
            raise NotFoundError("employee not found")

    def ensure_employee(self, employee_id: str) -> None:
        if not (employee_id or "").strip():
            raise ValidationError("employee is required")
        with self._session() as session, translate_store_errors():
            self._ensure_employee(session, employee_id.strip())

    def _assign(
        self,
        session: Session,
        asset: Asset,
        employee_id: str,
        payload: AssetAssignRequest,
        actor_id: str | None,
    ) -> None:
        store = AssetStore(session)
        ledger = AssignmentLedger(session)
        active = ledger.active_for(asset.id)
        result = assign_transition(asset.status, has_active_assignment=active is not None)
        if isinstance(result, TransitionRejected):
            raise PreconditionViolationError(result.reason)
        record = ledger.append(
            asset.id,
            employee_id,
            _clean_text(payload.condition),
            _clean_text(payload.remarks),
            actor_id,
        )
        store.set_status(asset, result.status)
        self._stage_event(
            session,
            "asset.assigned",
            {
                "asset_id": asset.id,
                "assignment_id": record.id,
                "employee_id": employee_id,
                "condition": record.condition_on_assignment,
            },
            actor_id,
        )

    def create_asset(self, payload: AssetCreate, actor_id: str | None = None) -> Asset:
        fields = payload.model_dump(exclude={"assigned_to"})
        for key in REQUIRED_TEXT_FIELDS:
            fields[key] = _clean_text(fields[key])
            if fields[key] is None:
                raise ValidationError(f"{key} is required")
        holder = _clean_text(payload.assigned_to)

        with self._session() as session, translate_store_errors():
            store = AssetStore(session)
            if holder is not None:
                self._ensure_employee(session, holder)
            if store.code_taken(fields["asset_code"]):
                raise PreconditionViolationError(DUPLICATE_CODE_REASON)
            asset = store.insert(fields)
            self._stage_event(
                session,
                "asset.created",
                {
                    "asset_id": asset.id,
                    "asset_code": asset.asset_code,
                    "category": asset.category,
                    "status": asset.status,
                },
                actor_id,
            )
            if holder is not None:
                # Keep the pending insert unflushed so a code clash surfaces at commit.
                with session.no_autoflush:
                    self._assign(
                        session,
                        asset,
                        holder,
                        AssetAssignRequest(
                            employee_id=holder,
                            condition=INITIAL_ASSIGNMENT_CONDITION,
                            remarks=INITIAL_ASSIGNMENT_REMARKS,
                        ),
                        actor_id,
                    )
            self._commit(session, DUPLICATE_CODE_REASON)
            session.refresh(asset)
        return asset

    def update_asset(self, asset_id: str, payload: AssetUpdate, actor_id: str | None = None) -> Asset:
        changes = payload.model_dump(exclude_unset=True)
        for key in REQUIRED_TEXT_FIELDS:
            if key in changes:
                changes[key] = _clean_text(changes[key])
                if changes[key] is None:
                    raise ValidationError(f"{key} cannot be empty")
        target_status = changes.pop("status", None)

        with self._session() as session, translate_store_errors():
            store = AssetStore(session)
            asset = store.get(asset_id)
            previous_status = asset.status
            if target_status is not None:
                result = manual_status_transition(asset.status, target_status)
                if isinstance(result, TransitionRejected):
                    raise PreconditionViolationError(result.reason)
            if "asset_code" in changes and store.code_taken(changes["asset_code"], exclude_id=asset.id):
                raise PreconditionViolationError(DUPLICATE_CODE_REASON)
            store.update_fields(asset, changes)
            if target_status is not None and target_status != asset.status:
                store.set_status(asset, target_status)
            self._stage_event(
                session,
                "asset.updated",
                {
                    "asset_id": asset.id,
                    "fields": sorted([*changes, *(["status"] if target_status is not None else [])]),
                    "previous_status": previous_status,
                    "status": asset.status,
                },
                actor_id,
            )
            self._commit(session, DUPLICATE_CODE_REASON)
            session.refresh(asset)
        return asset

    def delete_asset(self, asset_id: str, actor_id: str | None = None) -> None:
        with self._session() as session, translate_store_errors():
            store = AssetStore(session)
            ledger = AssignmentLedger(session)
            asset = store.get(asset_id)
            removed = ledger.delete_for_asset(asset.id)
            self._stage_event(
                session,
                "asset.deleted",
                {"asset_id": asset.id, "asset_code": asset.asset_code, "assignments_removed": removed},
                actor_id,
            )
            store.delete(asset)
            session.commit()

    def assign_asset(
        self,
        asset_id: str,
        payload: AssetAssignRequest,
        actor_id: str | None = None,
    ) -> Asset:
        employee_id = _clean_text(payload.employee_id)
        if employee_id is None:
            raise ValidationError("employee is required")

        with self._session() as session, translate_store_errors():
            asset = AssetStore(session).get(asset_id)
            self._ensure_employee(session, employee_id)
            self._assign(session, asset, employee_id, payload, actor_id)
            self._commit(session, REASON_ALREADY_ASSIGNED)
            session.refresh(asset)
        return asset

    def return_asset(
        self,
        asset_id: str,
        payload: AssetReturnRequest,
        actor_id: str | None = None,
    ) -> Asset:
        if payload.new_status not in RETURN_DESTINATIONS:
            raise ValidationError(f"illegal return destination: {payload.new_status}")

        with self._session() as session, translate_store_errors():
            store = AssetStore(session)
            ledger = AssignmentLedger(session)
            asset = store.get(asset_id)
            record = ledger.find(payload.assignment_id)
            if record is None or record.asset_id != asset.id:
                raise NotFoundError("assignment not found")
            active = ledger.active_for(asset.id)
            result = return_transition(
                asset.status,
                payload.new_status,
                has_active_assignment=active is not None,
            )
            if isinstance(result, TransitionRejected):
                raise PreconditionViolationError(result.reason)
            ledger.close(record.id, _clean_text(payload.condition), _clean_text(payload.remarks))
            store.set_status(asset, result.status)
            self._stage_event(
                session,
                "asset.returned",
                {
                    "asset_id": asset.id,
                    "assignment_id": record.id,
                    "employee_id": record.employee_id,
                    "condition": record.condition_on_return,
                    "status": asset.status,
                },
                actor_id,
            )
            session.commit()
            session.refresh(asset)
        return asset
