"""Purchase order service - Business logic for purchase orders and suppliers"""

import logging
from collections import Counter
from typing import Iterable, Optional, Sequence

from ...auth import AuthUser
from ...cache import QueryCache
from ...errors import UpstreamError
from ...schemas import MutationResponse, Toast
from ...shared.dates import iso_utc, local_now
from ...shared.validators import blank_to_none, check_file_count, from_cents, natural_sort_key, require, to_cents
from ...submit_guard import SubmitGuard
from ...upstream import FilePart, UpstreamClient
from ..activities import fetch_activities, for_entity
from ..notes.service import NoteService
from .schemas import (
    STATUS_FLOW,
    STATUS_LABELS,
    LineItem,
    PurchaseOrderDetail,
    PurchaseOrderForm,
    PurchaseOrderStatus,
    SupplierCreate,
)

logger = logging.getLogger(__name__)

PURCHASE_ORDERS_QUERY_KEY = ("/api/purchase-orders",)
SUPPLIERS_QUERY_KEY = ("/api/suppliers",)
NOTE_ENTITY_TYPE = "purchase_order"


def next_status(status: PurchaseOrderStatus) -> Optional[PurchaseOrderStatus]:
    """The status after `status` in aangekocht → ontvangen → verwerkt, or None at the end"""
    index = STATUS_FLOW.index(PurchaseOrderStatus(status))
    if index + 1 < len(STATUS_FLOW):
        return STATUS_FLOW[index + 1]
    return None


def status_counts(orders: Iterable[dict]) -> dict[str, int]:
    counts = Counter(order.get("status") for order in orders)
    return {status.value: counts.get(status.value, 0) for status in STATUS_FLOW}


def _next_status_or_none(status: Optional[str]) -> Optional[PurchaseOrderStatus]:
    try:
        return next_status(status)
    except ValueError:
        return None


def status_label(status: str) -> str:
    try:
        return STATUS_LABELS[PurchaseOrderStatus(status)]
    except ValueError:
        return status or ""


def line_item_cents(item: LineItem) -> tuple[int, int]:
    """(unit price, subtotal) in cents for one line"""
    return to_cents(item.unitPrice) or 0, to_cents(item.quantity * item.unitPrice) or 0


def order_total_cents(form: PurchaseOrderForm) -> int:
    """Sum of the lines; the manually entered total when there are no lines"""
    if form.lineItems:
        return to_cents(sum(item.quantity * item.unitPrice for item in form.lineItems)) or 0
    return to_cents(form.totalAmount) or 0


def sort_suppliers(suppliers: Iterable[dict]) -> list[dict]:
    """Highest supplier code first, comparing embedded numbers numerically"""
    return sorted(suppliers, key=lambda s: natural_sort_key(s.get("supplierCode") or ""), reverse=True)


def search_suppliers(suppliers: Sequence[dict], query: Optional[str]) -> list[dict]:
    """Suppliers whose code or name contains the query (case-insensitive)"""
    if not query or not query.strip():
        return sort_suppliers(suppliers)
    needle = query.strip().lower()
    matches = [
        s for s in suppliers
        if needle in (s.get("supplierCode") or "").lower() or needle in (s.get("name") or "").lower()
    ]
    return sort_suppliers(matches)


class PurchaseOrderService:
    """Service layer for purchase order business logic"""

    def __init__(self, upstream: UpstreamClient, cache: QueryCache, guard: SubmitGuard, user: AuthUser):
        self.upstream = upstream
        self.cache = cache
        self.guard = guard
        self.user = user

    def _invalidate(self, order_id: Optional[str] = None) -> None:
        parts = (*PURCHASE_ORDERS_QUERY_KEY, order_id) if order_id else PURCHASE_ORDERS_QUERY_KEY
        self.cache.invalidate(self.user.id, parts)

    # ========================================================================
    # READS
    # ========================================================================

    async def list_orders(self) -> list[dict]:
        async def load():
            return await self.upstream.get("/api/purchase-orders")

        return await self.cache.fetch(self.user.id, PURCHASE_ORDERS_QUERY_KEY, load) or []

    async def detail(self, order_id: str) -> PurchaseOrderDetail:
        """Order, line items, files, activity and notes for the detail view"""

        async def load_order():
            return await self.upstream.get(f"/api/purchase-orders/{order_id}")

        async def load_items():
            return await self.upstream.get(f"/api/purchase-order-items/{order_id}")

        async def load_files():
            return await self.upstream.get(f"/api/purchase-orders/{order_id}/files")

        order = await self.cache.fetch(self.user.id, (*PURCHASE_ORDERS_QUERY_KEY, order_id), load_order)
        items = await self.cache.fetch(self.user.id, ("/api/purchase-order-items", order_id), load_items) or []
        files = await self.cache.fetch(self.user.id, (*PURCHASE_ORDERS_QUERY_KEY, order_id, "files"), load_files) or []
        activities = for_entity(
            await fetch_activities(self.upstream, self.cache, self.user.id),
            NOTE_ENTITY_TYPE,
            order_id,
            id_field="purchaseOrderId",
        )
        notes = await NoteService(self.upstream, self.cache, self.guard, self.user).list_notes(NOTE_ENTITY_TYPE, order_id)

        suppliers = await self.list_suppliers()
        supplier = next((s for s in suppliers if s.get("id") == order.get("supplierId")), None)

        if items:
            total_cents = sum((item.get("subtotal") or 0) for item in items)
        else:
            total_cents = order.get("totalAmount") or 0
        return PurchaseOrderDetail(
            purchaseOrder=order,
            supplierName=supplier["name"] if supplier else "Onbekende leverancier",
            statusLabel=status_label(order.get("status")),
            nextStatus=_next_status_or_none(order.get("status")),
            items=items,
            files=files,
            activities=activities,
            notes=notes,
            totalItems=sum((item.get("quantity") or 0) for item in items),
            totalAmount=from_cents(total_cents),
        )

    # ========================================================================
    # CREATE
    # ========================================================================

    async def create(self, form: PurchaseOrderForm, files: Sequence[FilePart] = ()) -> MutationResponse:
        """
        Create the order, then its line items, then upload its files.

        A failed line item or upload does not undo the order: the response
        carries a destructive toast saying the order exists without them.
        """
        require(form.title, "Fout bij aanmaken", "Titel is verplicht")
        check_file_count(len(files))

        payload = {
            "title": form.title,
            "supplierId": blank_to_none(form.supplierId),
            "supplierNumber": blank_to_none(form.supplierNumber),
            "orderDate": iso_utc(form.orderDate or local_now()),
            "expectedDeliveryDate": iso_utc(form.expectedDeliveryDate) if form.expectedDeliveryDate else None,
            "totalAmount": order_total_cents(form),
            "currency": form.currency or "EUR",
            "status": PurchaseOrderStatus.AANGEKOCHT.value,
            "isPaid": form.isPaid,
            "notes": blank_to_none(form.notes),
            "createdBy": self.user.id,
        }

        async with self.guard.pending(self.user.id, "purchase-order:create"):
            try:
                order = await self.upstream.post("/api/purchase-orders", payload)
            except UpstreamError as e:
                raise e.with_toast("Fout bij aanmaken")

            try:
                for item in form.lineItems:
                    unit_price, subtotal = line_item_cents(item)
                    await self.upstream.post(
                        "/api/purchase-order-items",
                        {
                            "purchaseOrderId": order["id"],
                            "sku": item.sku,
                            "productName": item.productName,
                            "quantity": item.quantity,
                            "unitPrice": unit_price,
                            "subtotal": subtotal,
                        },
                    )
            except UpstreamError as e:
                # Files are not uploaded for an order with missing lines
                logger.warning(f"⚠️ Purchase order {order['id']} created but line items failed: {e.upstream_message}")
                self._invalidate()
                return MutationResponse(
                    toast=Toast.error(
                        "Regels niet opgeslagen",
                        f"De inkoop order is aangemaakt, maar: {e.upstream_message}",
                    ),
                    data=order,
                )

            if files:
                try:
                    await self.upstream.upload(f"/api/purchase-orders/{order['id']}/upload", files)
                    logger.info(f"📎 Uploaded {len(files)} files to purchase order {order['id']}")
                except UpstreamError as e:
                    logger.warning(f"⚠️ Purchase order {order['id']} created but upload failed: {e.upstream_message}")
                    self._invalidate()
                    return MutationResponse(
                        toast=Toast.error(
                            "Bestanden niet geüpload",
                            f"De inkoop order is aangemaakt, maar: {e.upstream_message}",
                        ),
                        data=order,
                    )

        self._invalidate()
        logger.info(f"✅ Purchase order {order['id']} created by {self.user.email}")
        return MutationResponse(
            toast=Toast(title="Inkoop order aangemaakt", description="De inkoop order is succesvol aangemaakt."),
            data=order,
        )

    # ========================================================================
    # STATUS, FILES, DELETE
    # ========================================================================

    async def update_status(self, order_id: str, status: PurchaseOrderStatus) -> MutationResponse:
        status = PurchaseOrderStatus(status)
        body = {"status": status.value}
        if status == PurchaseOrderStatus.ONTVANGEN:
            body["receivedDate"] = iso_utc(local_now())

        async with self.guard.pending(self.user.id, f"purchase-order:status:{order_id}"):
            try:
                data = await self.upstream.patch(f"/api/purchase-orders/{order_id}", body)
            except UpstreamError as e:
                raise e.with_toast("Fout bij bijwerken")

        self._invalidate()
        logger.info(f"✅ Purchase order {order_id} -> {status.value}")
        return MutationResponse(toast=Toast(title="Status bijgewerkt"), data=data)

    async def advance_status(self, order_id: str, current: PurchaseOrderStatus) -> MutationResponse:
        """Move to the next status in the flow ("Markeer Ontvangen" / "Markeer Verwerkt")"""
        target = next_status(current)
        if target is None:
            return MutationResponse(toast=Toast(title="Status bijgewerkt", description="Deze order is al verwerkt."))
        return await self.update_status(order_id, target)

    async def upload_files(self, order_id: str, files: Sequence[FilePart]) -> MutationResponse:
        check_file_count(len(files))
        if not files:
            return MutationResponse(toast=Toast(title="Geen bestanden geselecteerd"))

        try:
            data = await self.upstream.upload(f"/api/purchase-orders/{order_id}/files", files)
        except UpstreamError as e:
            raise e.with_toast("Upload mislukt", "Er is een fout opgetreden bij het uploaden.")

        self._invalidate(order_id)
        return MutationResponse(toast=Toast(title="Bestanden geüpload"), data=data)

    async def delete_file(self, order_id: str, file_id: str) -> MutationResponse:
        try:
            await self.upstream.delete(f"/api/purchase-order-files/{file_id}")
        except UpstreamError as e:
            raise e.with_toast("Verwijderen mislukt", "Er is een fout opgetreden.")

        self._invalidate(order_id)
        return MutationResponse(toast=Toast(title="Bestand verwijderd"))

    async def delete(self, order_id: str) -> MutationResponse:
        async with self.guard.pending(self.user.id, f"purchase-order:delete:{order_id}"):
            try:
                await self.upstream.delete(f"/api/purchase-orders/{order_id}")
            except UpstreamError as e:
                raise e.with_toast("Verwijderen mislukt", "Er is een fout opgetreden.")

        self._invalidate()
        logger.info(f"🗑️ Purchase order {order_id} deleted by {self.user.email}")
        return MutationResponse(
            toast=Toast(title="Inkoop order verwijderd", description="De inkoop order is succesvol verwijderd.")
        )

    # ========================================================================
    # SUPPLIERS
    # ========================================================================

    async def list_suppliers(self) -> list[dict]:
        async def load():
            return await self.upstream.get("/api/suppliers")

        return await self.cache.fetch(self.user.id, SUPPLIERS_QUERY_KEY, load) or []

    async def search_suppliers(self, query: Optional[str]) -> list[dict]:
        return search_suppliers(await self.list_suppliers(), query)

    async def create_supplier(self, data: SupplierCreate) -> MutationResponse:
        try:
            supplier = await self.upstream.post(
                "/api/suppliers", {"supplierCode": data.supplierCode, "name": data.name}
            )
        except UpstreamError as e:
            raise e.with_toast("Fout bij aanmaken leverancier")

        self.cache.invalidate(self.user.id, SUPPLIERS_QUERY_KEY)
        logger.info(f"✅ Supplier {data.supplierCode} created by {self.user.email}")
        return MutationResponse(
            toast=Toast(title="Leverancier aangemaakt", description="De leverancier is succesvol aangemaakt."),
            data=supplier,
        )
