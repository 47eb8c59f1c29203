from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from app.domain.models import (
    AssetAssignRequest,
    AssetUpdate,
    BatchOutcome,
    BatchResult,
    BulkItemFailure,
)
from app.infra import db
from app.infra.events import event_bus
from app.services.asset_service import AssetService
from app.services.errors import AssetError, StoreError, ValidationError

logger = logging.getLogger(__name__)

NOT_PROCESSED_REASON = "not processed: store unavailable"

ItemOperation = Callable[[str], Any]


@dataclass(frozen=True)
class BulkItemOutcome:
    asset_id: str
    error: AssetError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _unique_ids(asset_ids: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for raw in asset_ids:
        asset_id = (raw or "").strip()
        if not asset_id or asset_id in seen:
            continue
        seen.add(asset_id)
        ordered.append(asset_id)
    return ordered


def aggregate_outcomes(outcomes: Sequence[BulkItemOutcome], *, aborted: bool = False) -> BatchResult:
    failures = [
        BulkItemFailure(id=item.asset_id, reason=str(item.error), error=item.error.code)
        for item in outcomes
        if item.error is not None
    ]
    succeeded = len(outcomes) - len(failures)
    if not failures:
        outcome = BatchOutcome.SUCCESS
    elif succeeded == 0:
        outcome = BatchOutcome.FAILED
    else:
        outcome = BatchOutcome.PARTIAL
    return BatchResult(
        succeeded=succeeded,
        failed=len(failures),
        failures=failures,
        outcome=outcome,
        aborted=aborted,
    )


class BulkOperationCoordinator:
    """Apply one single-asset operation across a caller-selected id list.

    Items run one after another through the same ``AssetService`` call a
    single request would use. A failing item is recorded and the loop moves on;
    nothing already applied is rolled back. The loop stops early only when an
    item hits a StoreError and the store no longer answers a readiness probe,
    in which case every remaining id is reported as not processed.
    """

    def __init__(self, asset_service: AssetService | None = None) -> None:
        self._assets = asset_service or AssetService()

    def bulk_assign(
        self,
        asset_ids: Sequence[str],
        payload: AssetAssignRequest,
        actor_id: str | None = None,
    ) -> BatchResult:
        ids = self._validated_ids(asset_ids)
        self._assets.ensure_employee(payload.employee_id)
        result = self._run(
            ids,
            lambda asset_id: self._assets.assign_asset(asset_id, payload, actor_id=actor_id),
        )
        self._publish_summary("assign", result, actor_id, {"employee_id": payload.employee_id.strip()})
        return result

    def bulk_update_category(
        self,
        asset_ids: Sequence[str],
        category: str,
        actor_id: str | None = None,
    ) -> BatchResult:
        ids = self._validated_ids(asset_ids)
        new_category = (category or "").strip()
        if not new_category:
            raise ValidationError("category is required")
        update = AssetUpdate(category=new_category)
        result = self._run(
            ids,
            lambda asset_id: self._assets.update_asset(asset_id, update, actor_id=actor_id),
        )
        self._publish_summary("update_category", result, actor_id, {"category": new_category})
        return result

    def _validated_ids(self, asset_ids: Sequence[str]) -> list[str]:
        ids = _unique_ids(asset_ids)
        if not ids:
            raise ValidationError("at least one asset id is required")
        return ids

    def _apply_one(self, asset_id: str, operation: ItemOperation) -> BulkItemOutcome:
        try:
            operation(asset_id)
        except AssetError as exc:
            logger.warning("bulk item %s failed: %s (%s)", asset_id, exc, exc.code)
            return BulkItemOutcome(asset_id=asset_id, error=exc)
        return BulkItemOutcome(asset_id=asset_id)

    def _run(self, asset_ids: list[str], operation: ItemOperation) -> BatchResult:
        outcomes: list[BulkItemOutcome] = []
        for index, asset_id in enumerate(asset_ids):
            outcome = self._apply_one(asset_id, operation)
            outcomes.append(outcome)
            if isinstance(outcome.error, StoreError) and not db.check_db_ready():
                remaining = asset_ids[index + 1 :]
                logger.error(
                    "bulk operation aborted after %d of %d items: store unavailable",
                    index + 1,
                    len(asset_ids),
                )
                outcomes.extend(
                    BulkItemOutcome(asset_id=item, error=StoreError(NOT_PROCESSED_REASON)) for item in remaining
                )
                return aggregate_outcomes(outcomes, aborted=True)
        return aggregate_outcomes(outcomes)

    def _publish_summary(
        self,
        operation: str,
        result: BatchResult,
        actor_id: str | None,
        extra: dict[str, Any],
    ) -> None:
        if result.aborted:
            return
        try:
            event_bus.publish_dict(
                "asset.bulk_completed",
                {
                    "operation": operation,
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "outcome": result.outcome,
                    "failed_ids": [item.id for item in result.failures],
                    **extra,
                },
                actor_id=actor_id,
            )
        except SQLAlchemyError:
            # Items are already committed; the batch result still goes back to the caller.
            logger.exception("failed to record bulk %s summary event", operation)
