"""Repair service - Business logic for repair tickets"""

import logging
from datetime import datetime
from typing import Optional, Sequence, Union

from ...auth import AuthUser
from ...cache import QueryCache
from ...errors import UpstreamError
from ...schemas import MutationResponse, Toast
from ...shared.validators import blank_to_none, check_file_count, clean_file_urls, require, to_cents
from ...submit_guard import SubmitGuard
from ...upstream import FilePart, UpstreamClient
from ..activities import ACTIVITIES_QUERY_KEY, fetch_activities, for_entity
from ..notes.service import NoteService
from .analytics import RepairAnalytics, is_overdue, summarize, technician_name
from .schemas import STATUS_LABELS, FileField, Repair, RepairDetail, RepairEdit, RepairStatus
from .wizard import InventoryRepairWizard, RepairWizard, search_orders, technicians

logger = logging.getLogger(__name__)

REPAIRS_QUERY_KEY = ("/api/repairs",)
USERS_QUERY_KEY = ("/api/users",)
ORDERS_QUERY_KEY = ("/api/orders",)
CUSTOMERS_QUERY_KEY = ("/api/customers",)
NOTE_ENTITY_TYPE = "repair"
UNASSIGNED = "Niet toegewezen"


def status_label(status: Optional[str]) -> str:
    try:
        return STATUS_LABELS[RepairStatus(status)]
    except ValueError:
        return status or ""


def edit_payload(form: RepairEdit) -> dict:
    """Edit form to PATCH body: cost in cents, 'none' assignee to null"""
    return {
        "title": form.title.strip(),
        "description": blank_to_none(form.description),
        "productSku": blank_to_none(form.productSku),
        "productName": blank_to_none(form.productName),
        "issueCategory": blank_to_none(form.issueCategory),
        "estimatedCost": to_cents(form.estimatedCost),
        "assignedUserId": blank_to_none(form.assignedUserId),
        "priority": form.priority.value,
    }


class RepairService:
    """Service layer for repair business logic"""

    def __init__(self, upstream: UpstreamClient, cache: QueryCache, guard: SubmitGuard, user: AuthUser):
        self.upstream = upstream
        self.cache = cache
        self.guard = guard
        self.user = user

    def _invalidate(self, include_activities: bool = False) -> None:
        self.cache.invalidate(self.user.id, REPAIRS_QUERY_KEY)
        if include_activities:
            self.cache.invalidate(self.user.id, ACTIVITIES_QUERY_KEY)

    async def _cached_get(self, parts: tuple, path: str):
        async def load():
            return await self.upstream.get(path)

        return await self.cache.fetch(self.user.id, parts, load)

    # ========================================================================
    # READS
    # ========================================================================

    async def list_repairs(self) -> list[dict]:
        return await self._cached_get(REPAIRS_QUERY_KEY, "/api/repairs") or []

    async def list_users(self) -> list[dict]:
        return await self._cached_get(USERS_QUERY_KEY, "/api/users") or []

    async def list_technicians(self) -> list[dict]:
        return technicians(await self.list_users())

    async def search_orders(self, query: Optional[str]) -> list[dict]:
        """Orders for the wizard's first step, matched on number or customer email"""
        orders = await self._cached_get(ORDERS_QUERY_KEY, "/api/orders") or []
        # Paginated responses wrap the list
        if isinstance(orders, dict):
            orders = orders.get("orders") or []
        return search_orders(orders, query)

    async def find_customer(self, customer_id: Optional[str]) -> Optional[dict]:
        if not customer_id:
            return None
        customers = await self._cached_get(CUSTOMERS_QUERY_KEY, "/api/customers") or []
        return next((c for c in customers if c.get("id") == customer_id), None)

    async def analytics(self, now: Optional[datetime] = None) -> RepairAnalytics:
        return summarize(await self.list_repairs(), await self.list_users(), now)

    async def get_repair(self, repair_id: str) -> Repair:
        data = await self._cached_get((*REPAIRS_QUERY_KEY, repair_id), f"/api/repairs/{repair_id}")
        return Repair.model_validate(data)

    async def detail(self, repair_id: str) -> RepairDetail:
        """Repair with its activity slice, notes and cleaned-up file lists"""
        repair = await self.get_repair(repair_id)
        activities = for_entity(
            await fetch_activities(self.upstream, self.cache, self.user.id), NOTE_ENTITY_TYPE, repair_id
        )
        notes = await NoteService(self.upstream, self.cache, self.guard, self.user).list_notes(
            NOTE_ENTITY_TYPE, repair_id
        )

        technician = None
        if repair.assignedUserId:
            users = await self.list_users()
            technician = technician_name(next((u for u in users if u.get("id") == repair.assignedUserId), None))

        return RepairDetail(
            repair=repair,
            statusLabel=status_label(repair.status),
            isOverdue=is_overdue(repair.model_dump()),
            technicianName=technician or UNASSIGNED,
            photos=clean_file_urls(repair.photos),
            attachments=clean_file_urls(repair.attachments),
            activities=activities,
            notes=notes,
        )

    # ========================================================================
    # CREATE
    # ========================================================================

    async def create(
        self, wizard: Union[RepairWizard, InventoryRepairWizard], files: Sequence[FilePart] = ()
    ) -> MutationResponse:
        """
        Submit a wizard: POST the repair, then upload its files.

        An inventory repair answers with its own success toast. A failed
        upload keeps the created repair and says so in a destructive toast.
        """
        wizard.validate()
        wizard.add_files(files)

        if isinstance(wizard, RepairWizard) and wizard.form.order and not wizard.form.customer:
            wizard.form.customer = await self.find_customer(wizard.form.order.get("customerId"))

        inventory = isinstance(wizard, InventoryRepairWizard)
        async with self.guard.pending(self.user.id, "repair:create"):
            try:
                repair = await self.upstream.post("/api/repairs", wizard.payload())
            except UpstreamError as e:
                raise e.with_toast("Fout", "Er is een fout opgetreden bij het aanmaken van de reparatie.")

            if wizard.files:
                try:
                    await self.upstream.upload(f"/api/repairs/{repair['id']}/upload", wizard.files)
                    logger.info(f"📎 Uploaded {len(wizard.files)} files to repair {repair['id']}")
                except UpstreamError as e:
                    logger.warning(f"⚠️ Repair {repair['id']} created but upload failed: {e.upstream_message}")
                    self._invalidate(include_activities=True)
                    return MutationResponse(
                        toast=Toast.error(
                            "Bestanden niet geüpload",
                            f"De reparatie is aangemaakt, maar: {e.upstream_message}",
                        ),
                        data=repair,
                    )

        self._invalidate(include_activities=True)
        logger.info(f"✅ {'Inventory repair' if inventory else 'Repair'} {repair['id']} created by {self.user.email}")
        if inventory:
            toast = Toast(title="✅ Inkoopreparatie aangemaakt", description="De inkoopreparatie is succesvol aangemaakt.")
        else:
            toast = Toast(title="Reparatie aangemaakt", description="De reparatie is succesvol aangemaakt.")
        return MutationResponse(toast=toast, data=repair)

    # ========================================================================
    # UPDATES
    # ========================================================================

    async def update_status(self, repair_id: str, status: RepairStatus) -> MutationResponse:
        status = RepairStatus(status)
        async with self.guard.pending(self.user.id, f"repair:status:{repair_id}"):
            try:
                data = await self.upstream.patch(f"/api/repairs/{repair_id}", {"status": status.value})
            except UpstreamError as e:
                raise e.with_toast("Fout", "Kon de status niet bijwerken.")

        self._invalidate()
        logger.info(f"✅ Repair {repair_id} -> {status.value}")
        return MutationResponse(
            toast=Toast(title="Status bijgewerkt", description="De reparatiestatus is succesvol bijgewerkt."),
            data=data,
        )

    async def save_edit(self, repair_id: str, form: RepairEdit) -> MutationResponse:
        require(form.title, "Titel is verplicht")
        async with self.guard.pending(self.user.id, f"repair:update:{repair_id}"):
            try:
                data = await self.upstream.patch(f"/api/repairs/{repair_id}", edit_payload(form))
            except UpstreamError as e:
                raise e.with_toast("Fout", "Kon de reparatie niet bijwerken.")

        self._invalidate()
        logger.info(f"✅ Repair {repair_id} updated by {self.user.email}")
        return MutationResponse(
            toast=Toast(title="Reparatie bijgewerkt", description="De reparatiegegevens zijn succesvol bijgewerkt."),
            data=data,
        )

    async def upload_files(self, repair_id: str, files: Sequence[FilePart]) -> MutationResponse:
        check_file_count(len(files))
        if not files:
            return MutationResponse(toast=Toast(title="Geen bestanden geselecteerd"))

        async with self.guard.pending(self.user.id, f"repair:upload:{repair_id}"):
            try:
                data = await self.upstream.upload(f"/api/repairs/{repair_id}/upload", files)
            except UpstreamError as e:
                raise e.with_toast("Upload mislukt", "Er is een fout opgetreden bij het uploaden.")

        self._invalidate()
        return MutationResponse(
            toast=Toast(title="Bestanden geüpload", description="De bestanden zijn succesvol toegevoegd."),
            data=data,
        )

    async def delete_file(self, repair_id: str, field: FileField, file_url: str) -> MutationResponse:
        """Remove one URL from the repair's photos or attachments list"""
        field = FileField(field)
        repair = await self.get_repair(repair_id)
        remaining = [url for url in getattr(repair, field.value) if url != file_url]

        try:
            data = await self.upstream.patch(f"/api/repairs/{repair_id}", {field.value: remaining})
        except UpstreamError as e:
            raise e.with_toast("Fout", "Kon het bestand niet verwijderen.")

        self._invalidate()
        return MutationResponse(
            toast=Toast(title="Bestand verwijderd", description="Het bestand is succesvol verwijderd."),
            data=data,
        )

    async def delete(self, repair_id: str) -> MutationResponse:
        async with self.guard.pending(self.user.id, f"repair:delete:{repair_id}"):
            try:
                await self.upstream.delete(f"/api/repairs/{repair_id}")
            except UpstreamError as e:
                raise e.with_toast("Fout", "Kon de reparatie niet verwijderen.")

        self._invalidate()
        logger.info(f"🗑️ Repair {repair_id} deleted by {self.user.email}")
        return MutationResponse(
            toast=Toast(title="Reparatie verwijderd", description="De reparatie is succesvol verwijderd.")
        )
