"""Tests for the repair wizards, dashboard analytics, repair service and routes."""

import asyncio
import json
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from lensdesk.auth import get_current_user
from lensdesk.domain.repairs.analytics import average_repair_days, is_overdue, summarize, technician_name
from lensdesk.domain.repairs.schemas import InventoryRepairForm, RepairEdit, RepairStatus, RepairWizardForm
from lensdesk.domain.repairs.service import RepairService, edit_payload, status_label
from lensdesk.domain.repairs.wizard import (
    InventoryRepairWizard,
    RepairWizard,
    _Wizard,
    resolve_issue_category,
    search_orders,
    technicians,
    wizard_for_step,
)
from lensdesk.errors import DuplicateSubmission, UpstreamError, ValidationFailed
from lensdesk.main import app

TZ = ZoneInfo("Europe/Amsterdam")
NOW = datetime(2026, 10, 16, 10, 0, tzinfo=TZ)

ORDER = {"id": "o-1", "orderNumber": "#1042", "customerId": "c-7", "customerEmail": "order@klant.nl"}
CUSTOMER = {"id": "c-7", "firstName": "Lisa", "lastName": "Jansen", "email": "lisa@klant.nl"}


@pytest.fixture
def service(upstream, cache, guard, admin_user):
    return RepairService(upstream, cache, guard, admin_user)


def photo(name="a.jpg"):
    return (name, b"\xff\xd8\xff", "image/jpeg")


# =============================================================================
# WIZARDS
# =============================================================================


class TestIssueCategory:
    def test_other_with_details(self):
        assert resolve_issue_category("Overig", "  lens rammelt ") == "Overig: lens rammelt"

    def test_inventory_other_with_emoji(self):
        assert resolve_issue_category("❓ Overig", "stof achter frontlens") == "Overig: stof achter frontlens"

    def test_other_without_details_kept(self):
        assert resolve_issue_category("Overig", "  ") == "Overig"

    def test_regular_category_ignores_details(self):
        assert resolve_issue_category("Camera - sluiter defect", "x") == "Camera - sluiter defect"

    def test_empty(self):
        assert resolve_issue_category("", None) is None


class TestRepairWizard:
    def test_steps_and_labels(self):
        wizard = RepairWizard(RepairWizardForm(title="Autofocus"))
        assert (wizard.step, wizard.total_steps, wizard.label) == (1, 4, "Order")
        assert wizard.next() == 2
        assert wizard.label == "Details"
        assert wizard.back() == 1
        assert wizard.back() == 1

    def test_details_step_requires_title(self):
        wizard = RepairWizard(RepairWizardForm(title="  "), step=2)
        with pytest.raises(ValidationFailed) as exc:
            wizard.next()
        assert exc.value.toast.title == "Titel is verplicht"
        assert wizard.step == 2

    def test_order_step_is_optional(self):
        assert RepairWizard(RepairWizardForm()).next() == 2

    def test_last_step_does_not_advance(self):
        wizard = RepairWizard(RepairWizardForm(title="x"), step=4)
        assert wizard.next() == 4

    def test_payload(self):
        form = RepairWizardForm(
            title=" Autofocus defect ",
            description="",
            priority="high",
            estimatedCost=149.99,
            issueCategory="Overig",
            otherCategoryDetails="rammel",
            assignedUserId="none",
            slaDeadline=datetime(2026, 10, 20, 17, 0, tzinfo=TZ),
            caseId="case-1",
        )
        wizard = RepairWizard(form)
        wizard.select_order(ORDER, CUSTOMER)

        assert wizard.payload() == {
            "title": "Autofocus defect",
            "priority": "high",
            "estimatedCost": 14999,
            "slaDeadline": "2026-10-20T15:00:00.000Z",
            "issueCategory": "Overig: rammel",
            "customerId": "c-7",
            "orderId": "o-1",
            "customerName": "Lisa Jansen",
            "customerEmail": "lisa@klant.nl",
            "orderNumber": "#1042",
            "status": "new",
            "caseId": "case-1",
        }

    def test_customer_email_falls_back_to_order(self):
        wizard = RepairWizard(RepairWizardForm(title="x", order=ORDER))
        assert wizard.payload()["customerEmail"] == "order@klant.nl"
        assert "customerName" not in wizard.payload()

    def test_file_limit(self):
        wizard = RepairWizard(RepairWizardForm(title="x"))
        wizard.add_files([photo(f"{i}.jpg") for i in range(8)])
        with pytest.raises(ValidationFailed) as exc:
            wizard.add_files([photo("8.jpg"), photo("9.jpg"), photo("10.jpg")])
        assert exc.value.toast.title == "Te veel bestanden"
        assert len(wizard.files) == 8

        wizard.remove_file(0)
        wizard.remove_file(42)
        assert len(wizard.files) == 7


class TestInventoryRepairWizard:
    def test_brand_model_checked_before_title(self):
        wizard = InventoryRepairWizard(InventoryRepairForm())
        with pytest.raises(ValidationFailed) as exc:
            wizard.next()
        assert exc.value.toast.title == "Merk & Model is verplicht"

        wizard.form.brandModel = "Sony A7 III"
        with pytest.raises(ValidationFailed) as exc:
            wizard.next()
        assert exc.value.toast.title == "Titel is verplicht"

    def test_payload_uses_brand_model_as_product(self):
        wizard = InventoryRepairWizard(
            InventoryRepairForm(title="Sensor reinigen", brandModel=" Sony A7 III ", issueCategory="❓ Overig")
        )
        wizard.next()
        assert (wizard.step, wizard.label) == (2, "Bevestig")
        payload = wizard.payload()
        assert payload["productName"] == "Sony A7 III"
        assert payload["repairType"] == "inventory"
        assert payload["status"] == "new"
        assert payload["issueCategory"] == "❓ Overig"
        assert "assignedUserId" not in payload


class TestWizardForStep:
    def test_builds_wizard_at_step(self):
        wizard = wizard_for_step("customer", 3, {"title": "x"})
        assert isinstance(wizard, RepairWizard)
        assert wizard.label == "Planning"

    def test_step_clamped(self):
        assert wizard_for_step("inventory", 9, {}).step == 2

    def test_wizard_without_step_checks_cannot_be_built(self):
        class Bare(_Wizard):
            step_labels = ("Een",)

        with pytest.raises(TypeError):
            Bare()

    def test_unknown_kind(self):
        with pytest.raises(ValidationFailed):
            wizard_for_step("klant", 1, {})

    def test_invalid_form_data(self):
        with pytest.raises(ValidationFailed) as exc:
            wizard_for_step("customer", 1, {"priority": "enorm"})
        assert exc.value.toast.description.startswith("priority:")


class TestLookups:
    def test_technicians(self, sample_users):
        assert [u["id"] for u in technicians(sample_users)] == ["u-admin", "u-tech", "u-tech2"]

    def test_search_orders(self):
        orders = [ORDER, {"id": "o-2", "orderNumber": "#2001", "customerEmail": "piet@foto.nl"}]
        assert search_orders(orders, "1042") == [ORDER]
        assert [o["id"] for o in search_orders(orders, "PIET")] == ["o-2"]
        assert search_orders(orders, " ") == orders


# =============================================================================
# ANALYTICS
# =============================================================================


class TestRepairAnalytics:
    def test_summary(self, sample_repairs, sample_users):
        stats = summarize(sample_repairs, sample_users, NOW)

        assert stats.total == 5
        assert stats.pending == 2
        assert stats.completed == 2
        assert stats.canceled == 1
        assert [r["id"] for r in stats.overdue] == ["r3"]
        assert stats.overdueCount == 1
        assert stats.averageRepairDays == 3
        assert stats.urgentPending == 1

    def test_returned_counts_as_completed(self):
        stats = summarize([{"status": "completed"}, {"status": "returned"}, {"status": "canceled"}], [], NOW)
        assert stats.completed == 2
        assert stats.canceled == 1

    def test_top_technicians(self, sample_repairs, sample_users):
        top = summarize(sample_repairs, sample_users, NOW).topTechnicians
        assert [(t.userId, t.name, t.count) for t in top] == [("u-tech", "Tom Bakker", 2), ("u-tech2", "kees", 1)]

    def test_top_issues(self, sample_repairs):
        stats = summarize(sample_repairs, [], NOW)
        assert stats.topIssues[0].category == "Lensdefect - autofocus werkt niet"
        assert stats.topIssues[0].count == 2
        assert len(stats.topIssues) == 3
        assert stats.maxIssueCount == 2

    def test_empty(self):
        stats = summarize([], [], NOW)
        assert stats.total == 0
        assert stats.averageRepairDays == 0
        assert stats.maxIssueCount == 1

    def test_closed_repairs_never_overdue(self):
        repair = {"status": "completed", "slaDeadline": "2026-01-01T00:00:00.000Z"}
        assert not is_overdue(repair, NOW)
        assert is_overdue({**repair, "status": "waiting_parts"}, NOW)
        assert not is_overdue({"status": "new"}, NOW)

    def test_average_ignores_negative_durations(self):
        repairs = [
            {"status": "completed", "createdAt": "2026-10-05T08:00:00Z", "updatedAt": "2026-10-01T08:00:00Z"},
            {"status": "completed", "createdAt": "2026-10-01T08:00:00Z", "updatedAt": "2026-10-03T08:00:00Z"},
        ]
        assert average_repair_days(repairs) == 1

    def test_technician_name(self):
        assert technician_name(None) == "Onbekend"
        assert technician_name({"firstName": "", "lastName": "", "username": ""}) == "Onbekend"


class TestHelpers:
    def test_status_label(self):
        assert status_label("waiting_parts") == "Wacht op onderdelen"
        assert status_label("archived") == "archived"

    def test_edit_payload(self):
        payload = edit_payload(RepairEdit(title=" Lens ", estimatedCost=12.5, assignedUserId="none", priority="urgent"))
        assert payload["title"] == "Lens"
        assert payload["estimatedCost"] == 1250
        assert payload["assignedUserId"] is None
        assert payload["priority"] == "urgent"


# =============================================================================
# SERVICE
# =============================================================================


class TestRepairCreate:
    def test_customer_repair_with_files(self, service, upstream_stub):
        upstream_stub.add("GET", "/api/customers", [CUSTOMER])
        upstream_stub.add("POST", "/api/repairs", {"id": "r9"})
        upstream_stub.add("POST", "/api/repairs/r9/upload", {"photos": ["https://files.example/r9/a.jpg"]})

        wizard = RepairWizard(RepairWizardForm(title="Autofocus", order=ORDER))
        result = asyncio.run(service.create(wizard, [photo()]))

        body = upstream_stub.json(upstream_stub.calls("POST", "/api/repairs")[0])
        assert body["customerName"] == "Lisa Jansen"
        assert body["customerEmail"] == "lisa@klant.nl"
        upload = upstream_stub.calls("POST", "/api/repairs/r9/upload")[0]
        assert b'name="files"; filename="a.jpg"' in upload.content
        assert result.toast.title == "Reparatie aangemaakt"
        assert result.toast.description == "De reparatie is succesvol aangemaakt."

    def test_inventory_repair_toast(self, service, upstream_stub):
        upstream_stub.add("POST", "/api/repairs", {"id": "r10"})
        wizard = InventoryRepairWizard(InventoryRepairForm(title="Reinigen", brandModel="Fuji X-T4"))

        result = asyncio.run(service.create(wizard))

        assert result.toast.title == "✅ Inkoopreparatie aangemaakt"
        assert upstream_stub.calls("POST", "/api/repairs/r10/upload") == []

    def test_invalid_wizard_not_submitted(self, service, upstream_stub):
        with pytest.raises(ValidationFailed):
            asyncio.run(service.create(RepairWizard(RepairWizardForm())))
        assert upstream_stub.requests == []

    def test_upload_failure_keeps_repair(self, service, upstream_stub):
        upstream_stub.add("POST", "/api/repairs", {"id": "r11"})
        upstream_stub.add("POST", "/api/repairs/r11/upload", {"error": "Bestand te groot"}, status=413)

        result = asyncio.run(service.create(RepairWizard(RepairWizardForm(title="x")), [photo()]))

        assert result.data == {"id": "r11"}
        assert result.toast.variant.value == "destructive"
        assert result.toast.description == "De reparatie is aangemaakt, maar: Bestand te groot"

    def test_create_failure_toast(self, service, upstream_stub):
        upstream_stub.add("POST", "/api/repairs", {"error": "boom"}, status=500)
        with pytest.raises(UpstreamError) as exc:
            asyncio.run(service.create(RepairWizard(RepairWizardForm(title="x"))))
        assert exc.value.status_code == 502
        assert exc.value.toast.description == "Er is een fout opgetreden bij het aanmaken van de reparatie."

    def test_create_invalidates_repairs_and_activities(self, service, upstream_stub, cache, admin_user):
        upstream_stub.add("POST", "/api/repairs", {"id": "r12"})
        cache.set(admin_user.id, ("/api/repairs",), [])
        cache.set(admin_user.id, ("/api/repairs", "r1"), {"id": "r1"})
        cache.set(admin_user.id, ("/api/activities",), [])

        asyncio.run(service.create(RepairWizard(RepairWizardForm(title="x"))))

        assert cache.get(admin_user.id, ("/api/repairs",)) is None
        assert cache.get(admin_user.id, ("/api/repairs", "r1")) is None
        assert cache.get(admin_user.id, ("/api/activities",)) is None

    def test_duplicate_submission(self, service, guard, admin_user):
        guard.acquire(admin_user.id, "repair:create")
        with pytest.raises(DuplicateSubmission):
            asyncio.run(service.create(RepairWizard(RepairWizardForm(title="x"))))


class TestRepairUpdates:
    def test_update_status(self, service, upstream_stub):
        upstream_stub.add("PATCH", "/api/repairs/r3", {"id": "r3", "status": "quality_check"})
        result = asyncio.run(service.update_status("r3", RepairStatus.QUALITY_CHECK))
        assert upstream_stub.json(upstream_stub.calls("PATCH", "/api/repairs/r3")[0]) == {"status": "quality_check"}
        assert result.toast.title == "Status bijgewerkt"

    def test_save_edit_requires_title(self, service, upstream_stub):
        with pytest.raises(ValidationFailed) as exc:
            asyncio.run(service.save_edit("r3", RepairEdit(title=" ")))
        assert exc.value.toast.title == "Titel is verplicht"
        assert upstream_stub.requests == []

    def test_upload_limits(self, service, upstream_stub):
        with pytest.raises(ValidationFailed) as exc:
            asyncio.run(service.upload_files("r3", [photo(f"{i}.jpg") for i in range(11)]))
        assert exc.value.toast.description == "Je kunt maximaal 10 bestanden uploaden."

        result = asyncio.run(service.upload_files("r3", []))
        assert result.toast.title == "Geen bestanden geselecteerd"
        assert upstream_stub.requests == []

    def test_delete_file_patches_remaining_list(self, service, upstream_stub, sample_repairs):
        upstream_stub.add("GET", "/api/repairs/r5", sample_repairs[4])
        upstream_stub.add("PATCH", "/api/repairs/r5", {"id": "r5"})

        result = asyncio.run(service.delete_file("r5", "photos", "https://files.example/r5/a.jpg"))

        body = upstream_stub.json(upstream_stub.calls("PATCH", "/api/repairs/r5")[0])
        assert body == {"photos": ["https://files.example/undefined"]}
        assert result.toast.title == "Bestand verwijderd"

    def test_delete_failure(self, service, upstream_stub):
        upstream_stub.add("DELETE", "/api/repairs/r1", {"error": "Heeft onderdelen"}, status=409)
        with pytest.raises(UpstreamError) as exc:
            asyncio.run(service.delete("r1"))
        assert exc.value.toast.description == "Kon de reparatie niet verwijderen."


# =============================================================================
# ROUTES
# =============================================================================


class TestRepairRoutes:
    def test_detail(self, client, upstream_stub, sample_repairs):
        upstream_stub.add("GET", "/api/repairs/r5", sample_repairs[4])
        upstream_stub.add(
            "GET",
            "/api/activities",
            [
                {"id": "act-1", "metadata": {"entityType": "repair", "entityId": "r5"}},
                {"id": "act-2", "metadata": {"entityType": "repair", "entityId": "r1"}},
            ],
        )
        upstream_stub.add("GET", "/api/notes/repair/r5", [{"id": "n1", "content": "Klant gebeld"}])

        resp = client.get("/repairs/r5")

        assert resp.status_code == 200
        data = resp.json()
        assert data["statusLabel"] == "Nieuw"
        assert data["technicianName"] == "Niet toegewezen"
        assert data["photos"] == ["https://files.example/r5/a.jpg"]
        assert [a["id"] for a in data["activities"]] == ["act-1"]
        assert data["notes"][0]["id"] == "n1"

    def test_analytics(self, client, upstream_stub, sample_repairs, sample_users):
        upstream_stub.add("GET", "/api/repairs", sample_repairs)
        upstream_stub.add("GET", "/api/users", sample_users)
        resp = client.get("/repairs/analytics")
        assert resp.status_code == 200
        assert resp.json()["total"] == 5

    def test_issue_categories(self, client):
        assert client.get("/repairs/issue-categories").json()[-1] == "Overig"
        assert client.get("/repairs/issue-categories", params={"inventory": True}).json()[0] == "❓ Overig"

    def test_wizard_next(self, client):
        resp = client.post("/repairs/wizard/customer/next", json={"step": 1, "form": {}})
        assert resp.json() == {"step": 2, "totalSteps": 4, "label": "Details"}

        resp = client.post("/repairs/wizard/customer/next", json={"step": 2, "form": {"title": ""}})
        assert resp.status_code == 400
        assert resp.json()["toast"]["title"] == "Titel is verplicht"

    def test_create_multipart(self, client, upstream_stub):
        upstream_stub.add("POST", "/api/repairs", {"id": "r20"})
        upstream_stub.add("POST", "/api/repairs/r20/upload", {"ok": True})

        resp = client.post(
            "/repairs",
            data={"data": json.dumps({"title": "Sluiter", "estimatedCost": 80})},
            files=[("files", ("a.jpg", b"\xff\xd8", "image/jpeg"))],
        )

        assert resp.status_code == 200
        assert resp.json()["toast"]["title"] == "Reparatie aangemaakt"
        assert upstream_stub.json(upstream_stub.calls("POST", "/api/repairs")[0])["estimatedCost"] == 8000
        assert len(upstream_stub.calls("POST", "/api/repairs/r20/upload")) == 1

    def test_create_rejects_bad_json(self, client, upstream_stub):
        resp = client.post("/repairs", data={"data": '{"priority": "enorm"}'})
        assert resp.status_code == 400
        assert resp.json()["toast"]["title"] == "Ongeldige invoer"
        assert upstream_stub.requests == []

    def test_create_inventory(self, client, upstream_stub):
        upstream_stub.add("POST", "/api/repairs", {"id": "r21"})
        resp = client.post("/repairs/inventory", json={"title": "Reinigen", "brandModel": "Nikon D850"})
        assert resp.json()["toast"]["title"] == "✅ Inkoopreparatie aangemaakt"

    def test_upstream_error_status_mapped(self, client, upstream_stub):
        upstream_stub.add("PATCH", "/api/repairs/r1", {"error": "Niet gevonden"}, status=404)
        resp = client.patch("/repairs/r1/status", json={"status": "completed"})
        assert resp.status_code == 404
        assert resp.json()["toast"] == {
            "title": "Fout",
            "description": "Kon de status niet bijwerken.",
            "variant": "destructive",
        }

    def test_support_role_forbidden(self, client, support_user):
        app.dependency_overrides[get_current_user] = lambda: support_user
        resp = client.get("/repairs")
        assert resp.status_code == 403
        assert resp.json()["toast"]["title"] == "Geen toegang"

    def test_technician_allowed(self, client, upstream_stub, technician_user, sample_repairs):
        app.dependency_overrides[get_current_user] = lambda: technician_user
        upstream_stub.add("GET", "/api/repairs", sample_repairs)
        resp = client.get("/repairs")
        assert resp.status_code == 200
        assert len(resp.json()) == 5
