"""Todo router - FastAPI endpoints for todo operations"""

import logging

from fastapi import APIRouter, Depends, Query

from ...auth import AuthUser, get_current_user
from ...cache import QueryCache, get_query_cache
from ...schemas import MutationResponse
from ...submit_guard import SubmitGuard, get_submit_guard
from ...upstream import UpstreamClient, get_upstream
from .schemas import TodoForm, TodoScope, TodoStatusUpdate
from .service import TodoService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/todos", tags=["Todos"])


def get_todo_service(
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
    guard: SubmitGuard = Depends(get_submit_guard),
    current_user: AuthUser = Depends(get_current_user),
) -> TodoService:
    """Dependency injection for TodoService"""
    return TodoService(upstream, cache, guard, current_user)


@router.get("")
async def list_todos(
    scope: TodoScope = Query(TodoScope.ALL),
    service: TodoService = Depends(get_todo_service),
):
    """Todos visible to the current user (technicians only see their own)"""
    return await service.list_todos(scope)


@router.post("", response_model=MutationResponse)
async def create_todo(data: TodoForm, service: TodoService = Depends(get_todo_service)):
    return await service.create_todo(data)


@router.patch("/{todo_id}", response_model=MutationResponse)
async def update_todo(todo_id: str, data: TodoForm, service: TodoService = Depends(get_todo_service)):
    return await service.update_todo(todo_id, data)


@router.patch("/{todo_id}/status", response_model=MutationResponse)
async def update_todo_status(
    todo_id: str, data: TodoStatusUpdate, service: TodoService = Depends(get_todo_service)
):
    """Move a todo between kanban columns"""
    return await service.update_status(todo_id, data.status)


@router.delete("/{todo_id}", response_model=MutationResponse)
async def delete_todo(todo_id: str, service: TodoService = Depends(get_todo_service)):
    return await service.delete_todo(todo_id)
