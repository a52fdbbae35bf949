"""Purchase order router - FastAPI endpoints for purchase orders and suppliers"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ...auth import AuthUser, get_current_user
from ...cache import QueryCache, get_query_cache
from ...schemas import MutationResponse
from ...shared.forms import parse_form, read_uploads
from ...submit_guard import SubmitGuard, get_submit_guard
from ...upstream import UpstreamClient, get_upstream
from .schemas import (
    PurchaseOrderDetail,
    PurchaseOrderForm,
    PurchaseOrderStatus,
    PurchaseOrderStatusUpdate,
    SupplierCreate,
)
from .service import PurchaseOrderService, status_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])


def get_purchase_order_service(
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
    guard: SubmitGuard = Depends(get_submit_guard),
    current_user: AuthUser = Depends(get_current_user),
) -> PurchaseOrderService:
    """Dependency injection for PurchaseOrderService"""
    return PurchaseOrderService(upstream, cache, guard, current_user)


# ============================================================================
# SUPPLIERS
# ============================================================================


@router.get("/suppliers")
async def list_suppliers(
    search: Optional[str] = Query(None),
    service: PurchaseOrderService = Depends(get_purchase_order_service),
):
    """Suppliers by descending code, optionally filtered on code or name"""
    return await service.search_suppliers(search)


@router.post("/suppliers", response_model=MutationResponse)
async def create_supplier(
    data: SupplierCreate, service: PurchaseOrderService = Depends(get_purchase_order_service)
):
    return await service.create_supplier(data)


# ============================================================================
# PURCHASE ORDERS
# ============================================================================


@router.get("")
async def list_purchase_orders(service: PurchaseOrderService = Depends(get_purchase_order_service)):
    """All purchase orders plus the per-status counts for the kanban headers"""
    orders = await service.list_orders()
    return {"purchaseOrders": orders, "statusCounts": status_counts(orders)}


@router.post("", response_model=MutationResponse)
async def create_purchase_order(
    data: str = Form(...),
    files: list[UploadFile] = File([]),
    service: PurchaseOrderService = Depends(get_purchase_order_service),
):
    """Create a purchase order from a multipart form: JSON `data` plus optional `files`"""
    form = parse_form(PurchaseOrderForm, data)
    return await service.create(form, await read_uploads(files))


@router.get("/{order_id}", response_model=PurchaseOrderDetail)
async def get_purchase_order(order_id: str, service: PurchaseOrderService = Depends(get_purchase_order_service)):
    return await service.detail(order_id)


@router.patch("/{order_id}/status", response_model=MutationResponse)
async def update_purchase_order_status(
    order_id: str,
    data: PurchaseOrderStatusUpdate,
    service: PurchaseOrderService = Depends(get_purchase_order_service),
):
    return await service.update_status(order_id, data.status)


@router.post("/{order_id}/advance", response_model=MutationResponse)
async def advance_purchase_order(
    order_id: str,
    current: PurchaseOrderStatus = Query(..., alias="from"),
    service: PurchaseOrderService = Depends(get_purchase_order_service),
):
    """Move the order one step along aangekocht → ontvangen → verwerkt"""
    return await service.advance_status(order_id, current)


@router.post("/{order_id}/files", response_model=MutationResponse)
async def upload_purchase_order_files(
    order_id: str,
    files: list[UploadFile] = File(...),
    service: PurchaseOrderService = Depends(get_purchase_order_service),
):
    return await service.upload_files(order_id, await read_uploads(files))


@router.delete("/{order_id}/files/{file_id}", response_model=MutationResponse)
async def delete_purchase_order_file(
    order_id: str,
    file_id: str,
    service: PurchaseOrderService = Depends(get_purchase_order_service),
):
    return await service.delete_file(order_id, file_id)


@router.delete("/{order_id}", response_model=MutationResponse)
async def delete_purchase_order(order_id: str, service: PurchaseOrderService = Depends(get_purchase_order_service)):
    return await service.delete(order_id)
