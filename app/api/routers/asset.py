from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.api.deps import get_current_claims, require_perm
from app.domain.models import (
    AssetAssignRequest,
    AssetCreate,
    AssetDetailRead,
    AssetListItemRead,
    AssetRead,
    AssetReturnRequest,
    AssetSummaryRead,
    AssetUpdate,
    AssignmentOrder,
    BatchResult,
    BulkAssignRequest,
    BulkCategoryUpdateRequest,
    EmployeeHoldingRead,
)
from app.domain.permissions import PERM_ASSET_READ, PERM_ASSET_WRITE
from app.domain.state_machine import AssetStatus
from app.services.asset_service import AssetService
from app.services.bulk_service import BulkOperationCoordinator
from app.services.catalog_service import AssetCatalogService
from app.services.errors import (
    AssetError,
    NotFoundError,
    PreconditionViolationError,
    StoreError,
    ValidationError,
)

router = APIRouter()


def get_asset_service() -> AssetService:
    return AssetService()


def get_catalog_service() -> AssetCatalogService:
    return AssetCatalogService()


def get_bulk_coordinator() -> BulkOperationCoordinator:
    return BulkOperationCoordinator()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[AssetService, Depends(get_asset_service)]
Catalog = Annotated[AssetCatalogService, Depends(get_catalog_service)]
Bulk = Annotated[BulkOperationCoordinator, Depends(get_bulk_coordinator)]


def _handle_asset_error(exc: AssetError) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, PreconditionViolationError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, StoreError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    raise exc


@router.post(
    "",
    response_model=AssetRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def create_asset(payload: AssetCreate, claims: Claims, service: Service) -> AssetRead:
    try:
        asset = service.create_asset(payload, actor_id=claims["sub"])
        return AssetRead.model_validate(asset)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.get(
    "",
    response_model=list[AssetListItemRead],
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def list_assets(
    catalog: Catalog,
    status_filter: Annotated[AssetStatus | None, Query(alias="status")] = None,
    category: str | None = None,
    search: str | None = None,
) -> list[AssetListItemRead]:
    try:
        return catalog.fetch_assets(status=status_filter, category=category, search=search)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.get(
    "/summary",
    response_model=AssetSummaryRead,
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def summarize_assets(catalog: Catalog) -> AssetSummaryRead:
    try:
        return catalog.summarize()
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.get(
    "/export",
    response_model=list[dict[str, Any]],
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def export_assets(
    catalog: Catalog,
    status_filter: Annotated[AssetStatus | None, Query(alias="status")] = None,
    category: str | None = None,
    search: str | None = None,
) -> list[dict[str, Any]]:
    try:
        return catalog.export_rows(status=status_filter, category=category, search=search)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.get(
    "/holders/{employee_id}",
    response_model=list[EmployeeHoldingRead],
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def list_employee_holdings(employee_id: str, catalog: Catalog) -> list[EmployeeHoldingRead]:
    try:
        return catalog.employee_holdings(employee_id)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.post(
    "/bulk/assign",
    response_model=BatchResult,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def bulk_assign_assets(payload: BulkAssignRequest, claims: Claims, bulk: Bulk) -> BatchResult:
    request = AssetAssignRequest(
        employee_id=payload.employee_id,
        condition=payload.condition,
        remarks=payload.remarks,
    )
    try:
        return bulk.bulk_assign(payload.asset_ids, request, actor_id=claims["sub"])
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.post(
    "/bulk/category",
    response_model=BatchResult,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def bulk_update_category(payload: BulkCategoryUpdateRequest, claims: Claims, bulk: Bulk) -> BatchResult:
    try:
        return bulk.bulk_update_category(payload.asset_ids, payload.category, actor_id=claims["sub"])
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.get(
    "/{asset_id}",
    response_model=AssetDetailRead,
    dependencies=[Depends(require_perm(PERM_ASSET_READ))],
)
def get_asset(
    asset_id: str,
    catalog: Catalog,
    order: AssignmentOrder = AssignmentOrder.ASC,
) -> AssetDetailRead:
    try:
        return catalog.get_asset(asset_id, order=order)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.patch(
    "/{asset_id}",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def update_asset(asset_id: str, payload: AssetUpdate, claims: Claims, service: Service) -> AssetRead:
    try:
        asset = service.update_asset(asset_id, payload, actor_id=claims["sub"])
        return AssetRead.model_validate(asset)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.delete(
    "/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def delete_asset(asset_id: str, claims: Claims, service: Service) -> Response:
    try:
        service.delete_asset(asset_id, actor_id=claims["sub"])
    except AssetError as exc:
        _handle_asset_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{asset_id}/assign",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def assign_asset(asset_id: str, payload: AssetAssignRequest, claims: Claims, service: Service) -> AssetRead:
    try:
        asset = service.assign_asset(asset_id, payload, actor_id=claims["sub"])
        return AssetRead.model_validate(asset)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise


@router.post(
    "/{asset_id}/return",
    response_model=AssetRead,
    dependencies=[Depends(require_perm(PERM_ASSET_WRITE))],
)
def return_asset(asset_id: str, payload: AssetReturnRequest, claims: Claims, service: Service) -> AssetRead:
    try:
        asset = service.return_asset(asset_id, payload, actor_id=claims["sub"])
        return AssetRead.model_validate(asset)
    except AssetError as exc:
        _handle_asset_error(exc)
        raise
