"""Note router - notes panel endpoints shared by every entity detail view"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AuthUser, get_current_user
from ...cache import QueryCache, get_query_cache
from ...schemas import MutationResponse
from ...submit_guard import SubmitGuard, get_submit_guard
from ...upstream import UpstreamClient, get_upstream
from .schemas import NoteCreate, NoteDelete, NoteFilters, NoteGroups, NoteReaction
from .service import NoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["Notes"])


def get_note_service(
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
    guard: SubmitGuard = Depends(get_submit_guard),
    current_user: AuthUser = Depends(get_current_user),
) -> NoteService:
    """Dependency injection for NoteService"""
    return NoteService(upstream, cache, guard, current_user)


@router.get("/{entity_type}/{entity_id}", response_model=NoteGroups)
async def get_notes(
    entity_type: str,
    entity_id: str,
    author_id: Optional[str] = Query(None, alias="authorId"),
    tag_ids: list[str] = Query([], alias="tagIds"),
    search: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    service: NoteService = Depends(get_note_service),
):
    """Notes for an entity, split into pinned, regular and deleted"""
    filters = NoteFilters(authorId=author_id, tagIds=tag_ids, search=search, dateFrom=date_from, dateTo=date_to)
    return await service.notes_panel(entity_type, entity_id, filters)


@router.post("/{entity_type}/{entity_id}", response_model=MutationResponse)
async def create_note(
    entity_type: str, entity_id: str, data: NoteCreate, service: NoteService = Depends(get_note_service)
):
    return await service.create_note(entity_type, entity_id, data)


@router.post("/{entity_type}/{entity_id}/{note_id}/pin", response_model=MutationResponse)
async def pin_note(entity_type: str, entity_id: str, note_id: str, service: NoteService = Depends(get_note_service)):
    return await service.pin_note(entity_type, entity_id, note_id)


@router.delete("/{entity_type}/{entity_id}/{note_id}/pin", response_model=MutationResponse)
async def unpin_note(entity_type: str, entity_id: str, note_id: str, service: NoteService = Depends(get_note_service)):
    return await service.unpin_note(entity_type, entity_id, note_id)


@router.post("/{entity_type}/{entity_id}/{note_id}/reactions", response_model=MutationResponse)
async def react_to_note(
    entity_type: str,
    entity_id: str,
    note_id: str,
    data: NoteReaction,
    service: NoteService = Depends(get_note_service),
):
    return await service.react(entity_type, entity_id, note_id, data.emoji)


@router.post("/{entity_type}/{entity_id}/{note_id}/delete", response_model=MutationResponse)
async def delete_note(
    entity_type: str,
    entity_id: str,
    note_id: str,
    data: NoteDelete,
    service: NoteService = Depends(get_note_service),
):
    """Soft-delete a note with the reason given by the user"""
    return await service.delete_note(entity_type, entity_id, note_id, data.reason)
