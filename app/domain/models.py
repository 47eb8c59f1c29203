from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, ForeignKeyConstraint, Index, text
from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel

from app.domain.state_machine import AssetStatus


def now_utc() -> datetime:
    return datetime.now(UTC)


def normalize_asset_code(asset_code: str) -> str:
    return asset_code.strip().casefold()


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class Employee(SQLModel, table=True):
    """Read-only mirror of the employee directory."""

    __tablename__ = "employees"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    employee_code: str = Field(index=True, unique=True)
    display_name: str = Field(index=True)
    department: str | None = None


def _status_column() -> Column[Any]:
    return Column(
        SAEnum(
            AssetStatus,
            native_enum=False,
            length=30,
            values_callable=lambda enum_cls: [item.value for item in enum_cls],
        ),
        nullable=False,
        index=True,
    )


class Asset(SQLModel, table=True):
    __tablename__ = "assets"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    asset_code: str = Field(max_length=100, index=True)
    asset_code_key: str = Field(max_length=100, index=True, unique=True)
    name: str = Field(max_length=200, index=True)
    category: str = Field(max_length=100, index=True)
    brand: str | None = Field(default=None, max_length=100)
    model: str | None = Field(default=None, max_length=100)
    serial_number: str | None = Field(default=None, max_length=100, index=True)
    purchase_date: date | None = None
    purchase_cost: float | None = None
    warranty_expiry_date: date | None = None
    condition: str | None = Field(default=None, max_length=50)
    status: AssetStatus = Field(default=AssetStatus.AVAILABLE, sa_column=_status_column())
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class AssetAssignment(SQLModel, table=True):
    __tablename__ = "asset_assignments"
    __table_args__ = (
        ForeignKeyConstraint(["asset_id"], ["assets.id"], ondelete="CASCADE"),
        Index("ix_asset_assignments_asset_returned", "asset_id", "returned_at"),
        Index(
            "uq_asset_assignments_active_asset",
            "asset_id",
            unique=True,
            sqlite_where=text("returned_at IS NULL"),
            postgresql_where=text("returned_at IS NULL"),
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    asset_id: str = Field(index=True)
    employee_id: str = Field(index=True)
    assigned_at: datetime = Field(default_factory=now_utc, index=True)
    assigned_by: str | None = Field(default=None, index=True)
    condition_on_assignment: str | None = Field(default=None, max_length=50)
    remarks: str | None = None
    returned_at: datetime | None = Field(default=None, index=True)
    condition_on_return: str | None = Field(default=None, max_length=50)
    return_remarks: str | None = None


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class AssetCreate(BaseModel):
    asset_code: str = PydanticField(min_length=1, max_length=100)
    name: str = PydanticField(min_length=1, max_length=200)
    category: str = PydanticField(min_length=1, max_length=100)
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    purchase_date: date | None = None
    purchase_cost: float | None = PydanticField(default=None, ge=0)
    warranty_expiry_date: date | None = None
    condition: str | None = None
    assigned_to: str | None = None


class AssetUpdate(BaseModel):
    asset_code: str | None = PydanticField(default=None, min_length=1, max_length=100)
    name: str | None = PydanticField(default=None, min_length=1, max_length=200)
    category: str | None = PydanticField(default=None, min_length=1, max_length=100)
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    purchase_date: date | None = None
    purchase_cost: float | None = PydanticField(default=None, ge=0)
    warranty_expiry_date: date | None = None
    condition: str | None = None
    status: AssetStatus | None = None


class AssetAssignRequest(BaseModel):
    employee_id: str = PydanticField(min_length=1)
    condition: str = "Good"
    remarks: str | None = None


class AssetReturnRequest(BaseModel):
    assignment_id: str = PydanticField(min_length=1)
    condition: str = "Good"
    remarks: str | None = None
    new_status: AssetStatus = AssetStatus.AVAILABLE


class BulkAssignRequest(BaseModel):
    asset_ids: list[str] = PydanticField(min_length=1)
    employee_id: str = PydanticField(min_length=1)
    condition: str = "Good"
    remarks: str | None = None


class BulkCategoryUpdateRequest(BaseModel):
    asset_ids: list[str] = PydanticField(min_length=1)
    category: str = PydanticField(min_length=1, max_length=100)


class AssignmentOrder(StrEnum):
    ASC = "asc"
    DESC = "desc"


class AssignmentRead(ORMReadModel):
    id: str
    asset_id: str
    employee_id: str
    assigned_at: datetime
    assigned_by: str | None = None
    condition_on_assignment: str | None = None
    remarks: str | None = None
    returned_at: datetime | None = None
    condition_on_return: str | None = None
    return_remarks: str | None = None


class CurrentAssignmentView(AssignmentRead):
    is_active: bool
    employee_display_name: str | None = None


class AssetRead(ORMReadModel):
    id: str
    asset_code: str
    name: str
    category: str
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    purchase_date: date | None = None
    purchase_cost: float | None = None
    warranty_expiry_date: date | None = None
    condition: str | None = None
    status: AssetStatus
    created_at: datetime
    updated_at: datetime


class AssetListItemRead(AssetRead):
    current_assignment: CurrentAssignmentView | None = None


class AssetDetailRead(AssetListItemRead):
    assignments: list[AssignmentRead] = PydanticField(default_factory=list)


class EmployeeHoldingRead(AssignmentRead):
    asset: AssetRead


class AssetSummaryRead(BaseModel):
    total: int
    by_status: dict[str, int]
    by_category: dict[str, int]


class BatchOutcome(StrEnum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class BulkItemFailure(BaseModel):
    id: str
    reason: str
    error: str


class BatchResult(BaseModel):
    succeeded: int
    failed: int
    failures: list[BulkItemFailure] = PydanticField(default_factory=list)
    outcome: BatchOutcome
    aborted: bool = False
