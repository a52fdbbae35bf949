"""Tests for todos and the notes panel."""

import asyncio
from datetime import date

import pytest

from lensdesk.auth import get_current_user
from lensdesk.domain.notes.schemas import NoteCreate, NoteFilters
from lensdesk.domain.notes.service import NoteService, filter_notes, group_notes
from lensdesk.domain.todos.schemas import TodoForm, TodoScope, TodoStatus
from lensdesk.domain.todos.service import TodoService, to_payload
from lensdesk.errors import ValidationFailed
from lensdesk.main import app

NOTES = [
    {"id": "n1", "content": "<p>Klant gebeld</p>", "plainText": "Klant gebeld", "createdAt": "2026-10-01T09:00:00Z"},
    {"id": "n2", "content": "Onderdeel besteld", "isPinned": True, "createdAt": "2026-10-05T09:00:00Z"},
    {"id": "n3", "content": "Dubbel", "deletedAt": "2026-10-06T09:00:00Z", "createdAt": "2026-10-06T08:00:00Z"},
    {"id": "n4", "content": "Zonder datum"},
]


# =============================================================================
# TODOS
# =============================================================================


class TestTodoPayload:
    def test_empty_links_dropped_and_assignee_defaults(self, admin_user):
        form = TodoForm(title=" Lenzen tellen ", description="", orderId="", caseId="case-1")
        assert to_payload(form, admin_user) == {
            "title": "Lenzen tellen",
            "category": "other",
            "priority": "medium",
            "assignedUserId": "u-admin",
            "caseId": "case-1",
        }

    def test_blank_title_rejected(self):
        with pytest.raises(ValueError):
            TodoForm(title="   ")


class TestTodoService:
    def test_technician_only_sees_own_todos(self, upstream, upstream_stub, cache, guard, technician_user):
        upstream_stub.add("GET", "/api/todos", [])
        service = TodoService(upstream, cache, guard, technician_user)

        asyncio.run(service.list_todos(TodoScope.ALL))

        assert upstream_stub.requests[0].url.params["userId"] == "u-tech"

    def test_admin_all_and_my_scope(self, upstream, upstream_stub, cache, guard, admin_user):
        upstream_stub.add("GET", "/api/todos", [])
        service = TodoService(upstream, cache, guard, admin_user)

        asyncio.run(service.list_todos(TodoScope.ALL))
        asyncio.run(service.list_todos(TodoScope.MY))

        assert "userId" not in upstream_stub.requests[0].url.params
        assert upstream_stub.requests[1].url.params["userId"] == "u-admin"

    def test_create_sets_creator_update_does_not(self, upstream, upstream_stub, cache, guard, admin_user):
        upstream_stub.add("POST", "/api/todos", {"id": "t1"})
        upstream_stub.add("PATCH", "/api/todos/t1", {"id": "t1"})
        service = TodoService(upstream, cache, guard, admin_user)

        asyncio.run(service.create_todo(TodoForm(title="Inventaris")))
        asyncio.run(service.update_todo("t1", TodoForm(title="Inventaris", assignedUserId="u-tech")))

        assert upstream_stub.json(upstream_stub.requests[0])["createdBy"] == "u-admin"
        update = upstream_stub.json(upstream_stub.requests[1])
        assert "createdBy" not in update
        assert update["assignedUserId"] == "u-tech"

    def test_mutation_invalidates_every_scope(self, upstream, upstream_stub, cache, guard, admin_user):
        upstream_stub.add("PATCH", "/api/todos/t1", {"id": "t1"})
        cache.set(admin_user.id, ("/api/todos", None), [])
        cache.set(admin_user.id, ("/api/todos", "u-admin"), [])
        service = TodoService(upstream, cache, guard, admin_user)

        result = asyncio.run(service.update_status("t1", TodoStatus.DONE))

        assert cache.get(admin_user.id, ("/api/todos", None)) is None
        assert cache.get(admin_user.id, ("/api/todos", "u-admin")) is None
        assert result.toast.title == "Taak bijgewerkt"


class TestTodoRoutes:
    def test_create_validation_422_has_toast(self, client, upstream_stub):
        resp = client.post("/todos", json={"title": ""})
        assert resp.status_code == 422
        assert resp.json()["toast"]["title"] == "Ongeldige invoer"
        assert upstream_stub.requests == []

    def test_delete(self, client, upstream_stub):
        upstream_stub.add("DELETE", "/api/todos/t1")
        resp = client.delete("/todos/t1")
        assert resp.json()["toast"]["title"] == "Taak verwijderd"

    def test_status_failure(self, client, upstream_stub):
        upstream_stub.add("PATCH", "/api/todos/t1", {"error": "Niet gevonden"}, status=404)
        resp = client.patch("/todos/t1/status", json={"status": "done"})
        assert resp.status_code == 404
        assert resp.json()["toast"]["description"] == "Kon taak niet bijwerken"

    def test_technician_list(self, client, upstream_stub, technician_user):
        app.dependency_overrides[get_current_user] = lambda: technician_user
        upstream_stub.add("GET", "/api/todos", [{"id": "t2"}])
        assert client.get("/todos").json() == [{"id": "t2"}]
        assert upstream_stub.requests[0].url.params["userId"] == "u-tech"


# =============================================================================
# NOTES
# =============================================================================


class TestNoteFiltering:
    def test_search_plain_text_and_content(self):
        assert [n["id"] for n in filter_notes(NOTES, "gebeld")] == ["n1"]
        assert [n["id"] for n in filter_notes(NOTES, "BESTELD")] == ["n2"]

    def test_date_window_inclusive(self):
        result = filter_notes(NOTES, date_from=date(2026, 10, 5), date_to=date(2026, 10, 6))
        assert [n["id"] for n in result] == ["n2", "n3"]

    def test_undated_notes_dropped_by_date_filter(self):
        assert "n4" not in [n["id"] for n in filter_notes(NOTES, date_from=date(2026, 1, 1))]
        assert "n4" in [n["id"] for n in filter_notes(NOTES)]

    def test_grouping(self):
        groups = group_notes(NOTES)
        assert [n["id"] for n in groups.pinned] == ["n2"]
        assert [n["id"] for n in groups.notes] == ["n1", "n4"]
        assert [n["id"] for n in groups.deleted] == ["n3"]


class TestNoteService:
    @pytest.fixture
    def service(self, upstream, cache, guard, admin_user):
        return NoteService(upstream, cache, guard, admin_user)

    def test_panel_passes_author_and_tags_upstream(self, service, upstream_stub):
        upstream_stub.add("GET", "/api/notes/case/c1", NOTES)

        groups = asyncio.run(service.notes_panel("case", "c1", NoteFilters(authorId="u-tech", tagIds=["t1", "t2"])))

        params = upstream_stub.requests[0].url.params
        assert params["authorId"] == "u-tech"
        assert params.get_list("tagIds") == ["t1", "t2"]
        assert len(groups.notes) == 2

    def test_create_applies_tags(self, service, upstream_stub, cache, admin_user):
        upstream_stub.add("POST", "/api/notes", {"id": "n9"})
        upstream_stub.add("POST", "/api/notes/n9/tags/t1", {})
        cache.set(admin_user.id, ("/api/notes", "case", "c1", None, ""), NOTES)

        result = asyncio.run(service.create_note("case", "c1", NoteCreate(content="Nieuw", tagIds=["t1"])))

        body = upstream_stub.json(upstream_stub.requests[0])
        assert body["plainText"] == "Nieuw"
        assert body["authorId"] == "u-admin"
        assert upstream_stub.requests[1].url.path == "/api/notes/n9/tags/t1"
        assert cache.get(admin_user.id, ("/api/notes", "case", "c1", None, "")) is None
        assert result.toast.title == "Note added"

    def test_empty_content_rejected(self, service, upstream_stub):
        with pytest.raises(ValidationFailed):
            asyncio.run(service.create_note("case", "c1", NoteCreate(content="  ")))
        assert upstream_stub.requests == []

    def test_delete_requires_reason(self, service, upstream_stub):
        with pytest.raises(ValidationFailed) as exc:
            asyncio.run(service.delete_note("case", "c1", "n1", " "))
        assert exc.value.toast.description == "Delete reason is required"

    def test_delete_sends_reason(self, service, upstream_stub):
        upstream_stub.add("DELETE", "/api/notes/n1", {})
        asyncio.run(service.delete_note("case", "c1", "n1", "Dubbel ingevoerd"))
        assert upstream_stub.json(upstream_stub.requests[0]) == {"deleteReason": "Dubbel ingevoerd"}


class TestNoteRoutes:
    def test_panel_with_search(self, client, upstream_stub):
        upstream_stub.add("GET", "/api/notes/repair/r1", NOTES)
        data = client.get("/notes/repair/r1", params={"search": "dubbel"}).json()
        assert data == {"pinned": [], "notes": [], "deleted": [NOTES[2]]}

    def test_pin(self, client, upstream_stub):
        upstream_stub.add("POST", "/api/notes/n1/pin", {})
        assert client.post("/notes/repair/r1/n1/pin").json()["toast"]["title"] == "Note pinned"

    def test_react(self, client, upstream_stub):
        upstream_stub.add("POST", "/api/notes/n1/reactions", {})
        client.post("/notes/repair/r1/n1/reactions", json={"emoji": "👍"})
        assert upstream_stub.json(upstream_stub.requests[0]) == {"userId": "u-admin", "emoji": "👍"}
