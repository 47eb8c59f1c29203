from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, SQLModel, create_engine, select

from app.domain.models import (
    Asset,
    AssetAssignRequest,
    AssetCreate,
    AssetReturnRequest,
    AssetUpdate,
    AssignmentOrder,
    Employee,
    EventEnvelope,
    EventRecord,
)
from app.domain.state_machine import AssetStatus
from app.infra import db, events
from app.infra.events import event_bus
from app.services.asset_service import AssetService
from app.services.assignment_ledger import AssignmentLedger
from app.services.catalog_service import EXPORT_COLUMNS, AssetCatalogService
from app.services.errors import NotFoundError, PreconditionViolationError, StoreError


@pytest.fixture()
def catalog_engine(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[Engine, None, None]:
    db_path = tmp_path / "catalog_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    with Session(test_engine) as session:
        session.add(Employee(id="emp1", employee_code="E-001", display_name="Mei Tan"))
        session.add(Employee(id="emp2", employee_code="E-002", display_name="Omar Haddad"))
        session.commit()
    yield test_engine
    test_engine.dispose()


def _create(service: AssetService, code: str, category: str = "Laptop", **extra: object) -> Asset:
    return service.create_asset(AssetCreate(asset_code=code, name=f"{code} unit", category=category, **extra))


def test_fetch_assets_filters_and_search(catalog_engine: Engine) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    laptop = _create(service, "LAP-100", serial_number="SN-XYZ")
    phone = _create(service, "PHN-100", category="Phone")
    _create(service, "PHN-101", category="Phone")
    service.assign_asset(phone.id, AssetAssignRequest(employee_id="emp1"))

    everything = catalog.fetch_assets()
    assert len(everything) == 3

    assigned = catalog.fetch_assets(status=AssetStatus.ASSIGNED)
    assert [item.id for item in assigned] == [phone.id]
    assert assigned[0].current_assignment is not None
    assert assigned[0].current_assignment.employee_display_name == "Mei Tan"

    phones = catalog.fetch_assets(category="Phone")
    assert {item.asset_code for item in phones} == {"PHN-100", "PHN-101"}

    by_serial = catalog.fetch_assets(search="sn-xy")
    assert [item.id for item in by_serial] == [laptop.id]

    wildcard = catalog.fetch_assets(search="%")
    assert wildcard == []

    assert catalog.fetch_assets(status=AssetStatus.LOST) == []


def test_reads_are_idempotent(catalog_engine: Engine) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    asset = _create(service, "MON-100", category="Monitor", assigned_to="emp2")

    first = catalog.get_asset(asset.id)
    second = catalog.get_asset(asset.id)
    assert first == second
    assert catalog.fetch_assets() == catalog.fetch_assets()


def test_returned_status_exposes_last_holder(catalog_engine: Engine) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    asset = _create(service, "CAM-100", category="Camera", assigned_to="emp1")
    record_id = catalog.get_asset(asset.id).current_assignment.id  # type: ignore[union-attr]
    service.return_asset(asset.id, AssetReturnRequest(assignment_id=record_id, new_status=AssetStatus.AVAILABLE))

    # Returned is reachable through a manual edit only.
    service.update_asset(asset.id, AssetUpdate(status=AssetStatus.RETURNED))
    detail = catalog.get_asset(asset.id)
    assert detail.status == AssetStatus.RETURNED
    assert detail.current_assignment is not None
    assert detail.current_assignment.is_active is False
    assert detail.current_assignment.employee_id == "emp1"

    rows = catalog.export_rows()
    assert rows[0]["Assigned To"] == "Returned from Mei Tan"


def test_export_rows_layout(catalog_engine: Engine) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    _create(service, "KEY-100", category="Keyboard", assigned_to="emp2", purchase_cost=49.0)
    _create(service, "KEY-101", category="Keyboard")

    rows = catalog.export_rows()
    assert [list(row) for row in rows] == [list(EXPORT_COLUMNS), list(EXPORT_COLUMNS)]
    by_code = {row["Asset Code"]: row for row in rows}
    assert by_code["KEY-100"]["Assigned To"] == "Omar Haddad"
    assert by_code["KEY-100"]["Status"] == "Assigned"
    assert by_code["KEY-100"]["Purchase Price"] == 49.0
    assert by_code["KEY-101"]["Assigned To"] == "Unassigned"
    assert by_code["KEY-101"]["Assigned Date"] == "-"
    assert by_code["KEY-101"]["Serial Number"] == "-"


def test_summary_counts(catalog_engine: Engine) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    _create(service, "S-1", category="Phone", assigned_to="emp1")
    _create(service, "S-2", category="Laptop")
    _create(service, "S-3", category="Laptop")

    summary = catalog.summarize()
    assert summary.total == 3
    assert summary.by_status["Assigned"] == 1
    assert summary.by_status["Available"] == 2
    assert summary.by_status["Retired"] == 0
    assert list(summary.by_category) == ["Laptop", "Phone"]
    assert summary.by_category["Laptop"] == 2


def test_history_order_and_holdings(catalog_engine: Engine) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    asset = _create(service, "TAB-100", category="Tablet")
    for employee_id in ["emp1", "emp2"]:
        service.assign_asset(asset.id, AssetAssignRequest(employee_id=employee_id))
        record_id = catalog.get_asset(asset.id).current_assignment.id  # type: ignore[union-attr]
        service.return_asset(asset.id, AssetReturnRequest(assignment_id=record_id))

    ascending = catalog.get_asset(asset.id).assignments
    descending = catalog.get_asset(asset.id, order=AssignmentOrder.DESC).assignments
    assert [row.employee_id for row in ascending] == ["emp1", "emp2"]
    assert [row.employee_id for row in descending] == ["emp2", "emp1"]

    holdings = catalog.employee_holdings("emp1")
    assert len(holdings) == 1
    assert holdings[0].asset.asset_code == "TAB-100"
    assert holdings[0].returned_at is not None
    assert catalog.employee_holdings("nobody") == []

    with pytest.raises(NotFoundError):
        catalog.get_asset("missing")


def test_concurrent_assign_is_blocked_by_store(
    catalog_engine: Engine,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    asset = _create(service, "RACE-100")
    service.assign_asset(asset.id, AssetAssignRequest(employee_id="emp1"))

    # Simulate a second writer that read the asset before the first commit landed.
    with Session(catalog_engine) as session:
        row = session.get(Asset, asset.id)
        assert row is not None
        row.status = AssetStatus.AVAILABLE
        session.add(row)
        session.commit()
    with monkeypatch.context() as patched:
        patched.setattr(AssignmentLedger, "active_for", lambda self, asset_id: None)
        with pytest.raises(PreconditionViolationError, match="already assigned"):
            service.assign_asset(asset.id, AssetAssignRequest(employee_id="emp2"))

    detail = catalog.get_asset(asset.id)
    assert len(detail.assignments) == 1
    assert detail.current_assignment is not None
    assert detail.current_assignment.employee_id == "emp1"


def _fail_on(monkeypatch: pytest.MonkeyPatch, event_type: str) -> None:
    original_publish = event_bus.publish

    def _publish(event: EventEnvelope, session: Session | None = None) -> None:
        if event.event_type == event_type:
            raise OperationalError("INSERT INTO events", {}, Exception("disk I/O error"))
        original_publish(event, session=session)

    monkeypatch.setattr(event_bus, "publish", _publish)


def test_failed_event_write_rolls_back_assignment(
    catalog_engine: Engine,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    asset = _create(service, "EVT-100")

    with monkeypatch.context() as patched:
        _fail_on(patched, "asset.assigned")
        with pytest.raises(StoreError):
            service.assign_asset(asset.id, AssetAssignRequest(employee_id="emp1"))

    detail = catalog.get_asset(asset.id)
    assert detail.status == AssetStatus.AVAILABLE
    assert detail.assignments == []

    service.assign_asset(asset.id, AssetAssignRequest(employee_id="emp1"))
    assert catalog.get_asset(asset.id).status == AssetStatus.ASSIGNED


def test_failed_event_write_rolls_back_return(
    catalog_engine: Engine,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service = AssetService()
    catalog = AssetCatalogService()
    asset = _create(service, "EVT-200", assigned_to="emp2")
    record_id = catalog.get_asset(asset.id).current_assignment.id  # type: ignore[union-attr]

    with monkeypatch.context() as patched:
        _fail_on(patched, "asset.returned")
        with pytest.raises(StoreError):
            service.return_asset(asset.id, AssetReturnRequest(assignment_id=record_id))

    detail = catalog.get_asset(asset.id)
    assert detail.status == AssetStatus.ASSIGNED
    assert detail.current_assignment is not None
    assert detail.current_assignment.is_active is True


def test_create_with_holder_is_one_transaction(
    catalog_engine: Engine,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service = AssetService()
    catalog = AssetCatalogService()

    with monkeypatch.context() as patched:
        _fail_on(patched, "asset.assigned")
        with pytest.raises(StoreError):
            _create(service, "EVT-300", assigned_to="emp1")
    assert catalog.fetch_assets() == []

    asset = _create(service, "EVT-300", assigned_to="emp1")
    assert asset.status == AssetStatus.ASSIGNED
    with Session(catalog_engine) as session:
        event_types = [row.event_type for row in session.exec(select(EventRecord)).all()]
    assert sorted(event_types) == ["asset.assigned", "asset.created"]
