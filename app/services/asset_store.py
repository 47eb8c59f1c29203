from __future__ import annotations

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from app.domain.models import Asset, normalize_asset_code, now_utc
from app.domain.state_machine import AssetStatus
from app.services.errors import NotFoundError, StoreError

EDITABLE_FIELDS = frozenset(
    {
        "asset_code",
        "name",
        "category",
        "brand",
        "model",
        "serial_number",
        "purchase_date",
        "purchase_cost",
        "warranty_expiry_date",
        "condition",
    }
)


@contextmanager
def translate_store_errors() -> Generator[None, None, None]:
    """Surface driver and connection failures as StoreError.

    IntegrityError passes through untouched so callers can map constraint
    violations to business errors.
    """
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        raise StoreError(f"asset store unavailable: {exc.__class__.__name__}") from exc


class AssetStore:
    def __init__(self, session: Session) -> None:
        self._session = session

    def find(self, asset_id: str) -> Asset | None:
        return self._session.get(Asset, asset_id)

    def get(self, asset_id: str) -> Asset:
        asset = self.find(asset_id)
        if asset is None:
            raise NotFoundError("asset not found")
        return asset

    def get_many(self, asset_ids: Iterable[str]) -> list[Asset]:
        ids = list(asset_ids)
        if not ids:
            return []
        return list(self._session.exec(select(Asset).where(col(Asset.id).in_(ids))).all())

    def code_taken(self, asset_code: str, *, exclude_id: str | None = None) -> bool:
        statement = select(Asset.id).where(Asset.asset_code_key == normalize_asset_code(asset_code))
        if exclude_id is not None:
            statement = statement.where(Asset.id != exclude_id)
        return self._session.exec(statement).first() is not None

    def insert(self, fields: dict[str, Any]) -> Asset:
        values = {key: value for key, value in fields.items() if key in EDITABLE_FIELDS}
        asset = Asset(
            **values,
            asset_code_key=normalize_asset_code(values["asset_code"]),
            status=AssetStatus.AVAILABLE,
        )
        self._session.add(asset)
        return asset

    def update_fields(self, asset: Asset, changes: dict[str, Any]) -> Asset:
        for key, value in changes.items():
            if key not in EDITABLE_FIELDS:
                continue
            setattr(asset, key, value)
            if key == "asset_code":
                asset.asset_code_key = normalize_asset_code(value)
        asset.updated_at = now_utc()
        self._session.add(asset)
        return asset

    def set_status(self, asset: Asset, status: AssetStatus) -> Asset:
        asset.status = status
        asset.updated_at = now_utc()
        self._session.add(asset)
        return asset

    def delete(self, asset: Asset) -> None:
        self._session.delete(asset)

    def query(
        self,
        *,
        status: AssetStatus | None = None,
        category: str | None = None,
        search: str | None = None,
    ) -> list[Asset]:
        statement = select(Asset)
        if status is not None:
            statement = statement.where(Asset.status == status)
        if category is not None:
            statement = statement.where(Asset.category == category)
        term = (search or "").strip()
        if term:
            statement = statement.where(
                or_(
                    col(Asset.asset_code).icontains(term, autoescape=True),
                    col(Asset.name).icontains(term, autoescape=True),
                    col(Asset.serial_number).icontains(term, autoescape=True),
                )
            )
        statement = statement.order_by(col(Asset.created_at).desc(), col(Asset.id).desc())
        return list(self._session.exec(statement).all())

    def count_by_status(self) -> dict[str, int]:
        rows = self._session.exec(select(Asset.status, func.count()).group_by(Asset.status)).all()
        return {AssetStatus(status).value: int(count) for status, count in rows}

    def count_by_category(self) -> dict[str, int]:
        rows = self._session.exec(select(Asset.category, func.count()).group_by(Asset.category)).all()
        return {category: int(count) for category, count in rows}
