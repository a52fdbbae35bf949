"""Todo service - Business logic for todo operations"""

import logging
from typing import Optional

from ...auth import AuthUser, Role
from ...cache import QueryCache
from ...errors import UpstreamError
from ...schemas import MutationResponse, Toast
from ...shared.validators import blank_to_none
from ...submit_guard import SubmitGuard
from ...upstream import UpstreamClient
from ..activities import ACTIVITIES_QUERY_KEY
from .schemas import TodoForm, TodoScope, TodoStatus

logger = logging.getLogger(__name__)

TODOS_QUERY_KEY = ("/api/todos",)


def to_payload(form: TodoForm, user: AuthUser) -> dict:
    """
    Package a todo form for the upstream API.

    Empty link fields are left out of the body entirely, and the assignee
    defaults to the current user.
    """
    payload = {
        "title": form.title,
        "description": blank_to_none(form.description),
        "category": form.category.value,
        "priority": form.priority.value,
        "assignedUserId": blank_to_none(form.assignedUserId) or user.id,
        "dueDate": form.dueDate.isoformat() if form.dueDate else None,
        "orderId": blank_to_none(form.orderId),
        "caseId": blank_to_none(form.caseId),
        "customerId": blank_to_none(form.customerId),
        "repairId": blank_to_none(form.repairId),
    }
    return {k: v for k, v in payload.items() if v is not None}


class TodoService:
    """Service layer for todo business logic"""

    def __init__(self, upstream: UpstreamClient, cache: QueryCache, guard: SubmitGuard, user: AuthUser):
        self.upstream = upstream
        self.cache = cache
        self.guard = guard
        self.user = user

    def _list_user_filter(self, scope: TodoScope) -> Optional[str]:
        # Technicians only ever see their own todos
        if self.user.role == Role.TECHNICUS.value or scope == TodoScope.MY:
            return self.user.id
        return None

    async def list_todos(self, scope: TodoScope = TodoScope.ALL) -> list[dict]:
        user_filter = self._list_user_filter(scope)

        async def load():
            return await self.upstream.get("/api/todos", params={"userId": user_filter})

        return await self.cache.fetch(self.user.id, (*TODOS_QUERY_KEY, user_filter), load) or []

    def _invalidate(self, include_activities: bool = True) -> None:
        self.cache.invalidate(self.user.id, TODOS_QUERY_KEY)
        if include_activities:
            self.cache.invalidate(self.user.id, ACTIVITIES_QUERY_KEY)

    async def create_todo(self, form: TodoForm) -> MutationResponse:
        payload = {**to_payload(form, self.user), "createdBy": self.user.id}

        async with self.guard.pending(self.user.id, "todo:create"):
            try:
                data = await self.upstream.post("/api/todos", payload)
            except UpstreamError as e:
                raise e.with_toast("Failed to create todo", "There was an error creating your todo")

        self._invalidate()
        logger.info(f"✅ Todo created by {self.user.email}: {form.title}")
        return MutationResponse(
            toast=Toast(title="Todo created", description="Your todo has been created successfully"),
            data=data,
        )

    async def update_todo(self, todo_id: str, form: TodoForm) -> MutationResponse:
        """PATCH the packaged form fields of an existing todo"""
        async with self.guard.pending(self.user.id, f"todo:update:{todo_id}"):
            try:
                data = await self.upstream.patch(f"/api/todos/{todo_id}", to_payload(form, self.user))
            except UpstreamError as e:
                raise e.with_toast("Failed to update todo", "There was an error updating your todo")

        self._invalidate()
        logger.info(f"✅ Todo {todo_id} updated by {self.user.email}")
        return MutationResponse(
            toast=Toast(title="Todo updated", description="Your todo has been updated successfully"),
            data=data,
        )

    async def update_status(self, todo_id: str, status: TodoStatus) -> MutationResponse:
        async with self.guard.pending(self.user.id, f"todo:status:{todo_id}"):
            try:
                data = await self.upstream.patch(f"/api/todos/{todo_id}", {"status": TodoStatus(status).value})
            except UpstreamError as e:
                raise e.with_toast("Bijwerken mislukt", "Kon taak niet bijwerken")

        self._invalidate(include_activities=False)
        return MutationResponse(
            toast=Toast(title="Taak bijgewerkt", description="Taakstatus is succesvol bijgewerkt"),
            data=data,
        )

    async def delete_todo(self, todo_id: str) -> MutationResponse:
        async with self.guard.pending(self.user.id, f"todo:delete:{todo_id}"):
            try:
                await self.upstream.delete(f"/api/todos/{todo_id}")
            except UpstreamError as e:
                raise e.with_toast("Verwijderen mislukt", "Kon taak niet verwijderen")

        self._invalidate()
        logger.info(f"🗑️ Todo {todo_id} deleted by {self.user.email}")
        return MutationResponse(toast=Toast(title="Taak verwijderd", description="Taak is succesvol verwijderd"))
