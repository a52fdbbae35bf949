"""Note service - notes attached to any console entity"""

import logging
from datetime import date
from typing import Iterable, Optional

from ...auth import AuthUser
from ...cache import QueryCache
from ...errors import UpstreamError, ValidationFailed
from ...schemas import MutationResponse, Toast
from ...shared.dates import parse_timestamp
from ...submit_guard import SubmitGuard
from ...upstream import UpstreamClient
from .schemas import NoteCreate, NoteFilters, NoteGroups

logger = logging.getLogger(__name__)


def notes_query_key(entity_type: str, entity_id: str) -> tuple:
    return ("/api/notes", entity_type, entity_id)


def filter_notes(
    notes: Iterable[dict],
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[dict]:
    """Text search over content/plainText and an inclusive creation-date window"""
    result = list(notes)
    if search and search.strip():
        query = search.strip().lower()
        result = [
            n for n in result
            if query in (n.get("plainText") or "").lower() or query in (n.get("content") or "").lower()
        ]

    if date_from or date_to:
        dated = []
        for note in result:
            created = parse_timestamp(note.get("createdAt"))
            if created is None:
                continue
            if date_from and created.date() < date_from:
                continue
            if date_to and created.date() > date_to:
                continue
            dated.append(note)
        result = dated
    return result


def group_notes(notes: Iterable[dict]) -> NoteGroups:
    groups = NoteGroups()
    for note in notes:
        if note.get("deletedAt"):
            groups.deleted.append(note)
        elif note.get("isPinned"):
            groups.pinned.append(note)
        else:
            groups.notes.append(note)
    return groups


class NoteService:
    def __init__(self, upstream: UpstreamClient, cache: QueryCache, guard: SubmitGuard, user: AuthUser):
        self.upstream = upstream
        self.cache = cache
        self.guard = guard
        self.user = user

    async def list_notes(
        self, entity_type: str, entity_id: str, author_id: Optional[str] = None, tag_ids: Optional[list[str]] = None
    ) -> list[dict]:
        tag_ids = tag_ids or []
        key = (*notes_query_key(entity_type, entity_id), author_id, ",".join(tag_ids))

        async def load():
            return await self.upstream.get(
                f"/api/notes/{entity_type}/{entity_id}",
                params={"authorId": author_id, "tagIds": tag_ids or None},
            )

        return await self.cache.fetch(self.user.id, key, load) or []

    async def notes_panel(self, entity_type: str, entity_id: str, filters: NoteFilters) -> NoteGroups:
        notes = await self.list_notes(entity_type, entity_id, filters.authorId, filters.tagIds)
        return group_notes(filter_notes(notes, filters.search, filters.dateFrom, filters.dateTo))

    def _invalidate(self, entity_type: str, entity_id: str) -> None:
        self.cache.invalidate(self.user.id, notes_query_key(entity_type, entity_id))

    async def create_note(self, entity_type: str, entity_id: str, data: NoteCreate) -> MutationResponse:
        """Create a note, then apply its tags one by one"""
        if not data.content or not data.content.strip():
            raise ValidationFailed("Error", "Note content is required")

        async with self.guard.pending(self.user.id, f"note:create:{entity_type}:{entity_id}"):
            try:
                note = await self.upstream.post(
                    "/api/notes",
                    {
                        "entityType": entity_type,
                        "entityId": entity_id,
                        "content": data.content,
                        "plainText": data.plainText or data.content,
                        "visibility": data.visibility.value,
                        "authorId": self.user.id,
                    },
                )
                for tag_id in data.tagIds:
                    await self.upstream.post(f"/api/notes/{note['id']}/tags/{tag_id}")
            except UpstreamError as e:
                raise e.with_toast("Error", "Failed to add note. Please try again.")

        self._invalidate(entity_type, entity_id)
        logger.info(f"📝 Note added to {entity_type} {entity_id} by {self.user.email}")
        return MutationResponse(
            toast=Toast(title="Note added", description="Your note has been added successfully."),
            data=note,
        )

    async def pin_note(self, entity_type: str, entity_id: str, note_id: str) -> MutationResponse:
        try:
            await self.upstream.post(f"/api/notes/{note_id}/pin")
        except UpstreamError as e:
            raise e.with_toast("Error")
        self._invalidate(entity_type, entity_id)
        return MutationResponse(toast=Toast(title="Note pinned"))

    async def unpin_note(self, entity_type: str, entity_id: str, note_id: str) -> MutationResponse:
        try:
            await self.upstream.delete(f"/api/notes/{note_id}/pin")
        except UpstreamError as e:
            raise e.with_toast("Error")
        self._invalidate(entity_type, entity_id)
        return MutationResponse(toast=Toast(title="Note unpinned"))

    async def react(self, entity_type: str, entity_id: str, note_id: str, emoji: str) -> MutationResponse:
        try:
            await self.upstream.post(f"/api/notes/{note_id}/reactions", {"userId": self.user.id, "emoji": emoji})
        except UpstreamError as e:
            raise e.with_toast("Error")
        self._invalidate(entity_type, entity_id)
        return MutationResponse(toast=Toast(title="Reaction added"))

    async def delete_note(
        self, entity_type: str, entity_id: str, note_id: str, reason: Optional[str]
    ) -> MutationResponse:
        """Soft-delete a note; a reason is mandatory"""
        if not reason or not reason.strip():
            raise ValidationFailed("Error", "Delete reason is required")

        async with self.guard.pending(self.user.id, f"note:delete:{note_id}"):
            try:
                await self.upstream.delete(f"/api/notes/{note_id}", json={"deleteReason": reason})
            except UpstreamError as e:
                raise e.with_toast("Error", "Failed to delete note")

        self._invalidate(entity_type, entity_id)
        logger.info(f"🗑️ Note {note_id} deleted by {self.user.email}: {reason}")
        return MutationResponse(toast=Toast(title="Note deleted"))
