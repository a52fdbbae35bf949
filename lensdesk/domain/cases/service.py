"""Case service - Business logic for support cases and their linked items"""

import logging
from typing import Iterable, Optional

from ...auth import AuthUser
from ...cache import QueryCache
from ...errors import UpstreamError
from ...schemas import PRIORITY_LABELS, MutationResponse, Priority, Toast
from ...submit_guard import SubmitGuard
from ...upstream import UpstreamClient
from ..notes.service import NoteService
from .schemas import (
    CASE_SOURCE_LABELS,
    CASE_STATUS_OPTIONS,
    CASE_TYPE_LABELS,
    PRIORITY_EMOJI,
    CaseDetail,
    CaseLinkCreate,
    CaseUpdate,
    LinkType,
)

logger = logging.getLogger(__name__)

CASES_QUERY_KEY = ("/api/cases",)
EMAIL_THREADS_QUERY_KEY = ("/api/email-threads",)
NOTE_ENTITY_TYPE = "case"
# Link picker shows at most this many candidates
LINK_SEARCH_LIMIT = 10


def status_index(status: Optional[str]) -> int:
    """Position of `status` in the stepper, -1 when unknown"""
    return next((i for i, option in enumerate(CASE_STATUS_OPTIONS) if option.value.value == status), -1)


def status_label(status: Optional[str]) -> str:
    index = status_index(status)
    return CASE_STATUS_OPTIONS[index].label if index >= 0 else (status or "")


def priority_label(priority: Optional[str]) -> str:
    try:
        return PRIORITY_LABELS[Priority(priority)]
    except ValueError:
        return priority or ""


def priority_emoji(priority: Optional[str]) -> Optional[str]:
    try:
        return PRIORITY_EMOJI[Priority(priority)]
    except ValueError:
        return None


def linked_ids(links: Iterable[dict], link_type: LinkType) -> set[str]:
    return {link.get("linkedId") for link in links if link.get("linkType") == LinkType(link_type).value}


def _contains(value, needle: str) -> bool:
    return needle in str(value or "").lower()


def search_link_candidates(
    link_type: LinkType, items: Iterable[dict], links: Iterable[dict], search: Optional[str] = None
) -> list[dict]:
    """Items of one type that are not linked yet and match the search text"""
    already = {link.get("linkedId") for link in links}
    needle = (search or "").strip().lower()
    link_type = LinkType(link_type)

    def matches(item: dict) -> bool:
        if not needle:
            return True
        if link_type == LinkType.EMAIL:
            return _contains(item.get("subject"), needle) or _contains(item.get("customerEmail"), needle)
        if link_type == LinkType.ORDER:
            return _contains(item.get("orderNumber"), needle) or _contains(item.get("customerEmail"), needle)
        if link_type == LinkType.RETURN:
            return _contains(item.get("returnNumber"), needle) or _contains(item.get("shopifyReturnName"), needle)
        return _contains(item.get("title"), needle)

    results = [item for item in items if item.get("id") not in already and matches(item)]
    return results[:LINK_SEARCH_LIMIT]


class CaseService:
    """Service layer for case business logic"""

    def __init__(self, upstream: UpstreamClient, cache: QueryCache, guard: SubmitGuard, user: AuthUser):
        self.upstream = upstream
        self.cache = cache
        self.guard = guard
        self.user = user

    async def _cached_get(self, parts: tuple, path: str, params: Optional[dict] = None):
        async def load():
            return await self.upstream.get(path, params=params)

        return await self.cache.fetch(self.user.id, parts, load)

    def _invalidate_emails(self, case_id: str) -> None:
        self.cache.invalidate(self.user.id, (*EMAIL_THREADS_QUERY_KEY, "caseId", case_id))

    # ========================================================================
    # READS
    # ========================================================================

    async def list_cases(self) -> list[dict]:
        return await self._cached_get(CASES_QUERY_KEY, "/api/cases") or []

    async def get_case(self, case_id: str) -> dict:
        return await self._cached_get((*CASES_QUERY_KEY, case_id), f"/api/cases/{case_id}")

    async def detail(self, case_id: str) -> CaseDetail:
        """Case with its linked emails, orders, repairs, todos, returns and notes"""
        case = await self.get_case(case_id)
        links = case.get("links") or []

        emails = await self._cached_get(
            (*EMAIL_THREADS_QUERY_KEY, "caseId", case_id), "/api/email-threads", {"caseId": case_id}
        )
        orders = await self._cached_get(("/api/orders", "caseId", case_id), "/api/orders", {"caseId": case_id})
        repair_ids = linked_ids(links, LinkType.REPAIR)
        todo_ids = linked_ids(links, LinkType.TODO)
        return_ids = linked_ids(links, LinkType.RETURN)

        repairs = await self._cached_get(("/api/repairs",), "/api/repairs") if repair_ids else []
        todos = await self._cached_get(("/api/todos", None), "/api/todos") if todo_ids else []
        returns = await self._cached_get(("/api/returns",), "/api/returns") if return_ids else []
        notes = await NoteService(self.upstream, self.cache, self.guard, self.user).list_notes(
            NOTE_ENTITY_TYPE, case_id
        )
        priority = case.get("priority") or Priority.MEDIUM.value

        return CaseDetail(
            case=case,
            statusLabel=status_label(case.get("status")),
            statusIndex=status_index(case.get("status")),
            priorityLabel=priority_label(priority),
            priorityEmoji=priority_emoji(priority),
            typeLabel=CASE_TYPE_LABELS.get(case.get("caseType")),
            sourceLabel=CASE_SOURCE_LABELS.get(case.get("source")),
            links=links,
            events=case.get("events") or [],
            emails=emails or [],
            orders=orders or [],
            repairs=[r for r in repairs or [] if r.get("id") in repair_ids],
            todos=[t for t in todos or [] if t.get("id") in todo_ids],
            returns=[r for r in returns or [] if r.get("id") in return_ids],
            notes=notes,
        )

    async def link_candidates(self, case_id: str, link_type: LinkType, search: Optional[str] = None) -> list[dict]:
        """Search results for the "link item" picker"""
        link_type = LinkType(link_type)
        case = await self.get_case(case_id)

        if link_type == LinkType.EMAIL:
            data = await self._cached_get(EMAIL_THREADS_QUERY_KEY, "/api/email-threads", {"limit": 100})
            items = (data or {}).get("items") or []
        elif link_type == LinkType.ORDER:
            data = await self._cached_get(("/api/orders", 1, 100), "/api/orders", {"page": 1, "limit": 100})
            items = (data or {}).get("orders") or []
        elif link_type == LinkType.REPAIR:
            items = await self._cached_get(("/api/repairs",), "/api/repairs") or []
        elif link_type == LinkType.TODO:
            items = await self._cached_get(("/api/todos", None), "/api/todos") or []
        else:
            items = await self._cached_get(("/api/returns",), "/api/returns") or []

        return search_link_candidates(link_type, items, case.get("links") or [], search)

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    async def update(self, case_id: str, data: CaseUpdate) -> MutationResponse:
        body = data.model_dump(mode="json", exclude_none=True)
        async with self.guard.pending(self.user.id, f"case:update:{case_id}"):
            try:
                updated = await self.upstream.patch(f"/api/cases/{case_id}", body)
            except UpstreamError as e:
                raise e.with_toast("Bijwerken mislukt")

        self.cache.invalidate(self.user.id, CASES_QUERY_KEY)
        logger.info(f"✅ Case {case_id} updated by {self.user.email}: {sorted(body)}")
        return MutationResponse(toast=Toast(title="Case bijgewerkt"), data=updated)

    async def link(self, case_id: str, data: CaseLinkCreate) -> MutationResponse:
        async with self.guard.pending(self.user.id, f"case:link:{case_id}"):
            try:
                link = await self.upstream.post(
                    f"/api/cases/{case_id}/links", {"linkType": data.linkType.value, "linkedId": data.linkedId}
                )
            except UpstreamError as e:
                raise e.with_toast("Koppelen mislukt")

        self.cache.invalidate(self.user.id, CASES_QUERY_KEY)
        self._invalidate_emails(case_id)
        logger.info(f"🔗 Linked {data.linkType.value} {data.linkedId} to case {case_id}")
        return MutationResponse(toast=Toast(title="Item gekoppeld"), data=link)

    async def unlink(self, case_id: str, link_id: str) -> MutationResponse:
        try:
            await self.upstream.delete(f"/api/cases/{case_id}/links/{link_id}")
        except UpstreamError as e:
            raise e.with_toast("Ontkoppelen mislukt")

        self.cache.invalidate(self.user.id, CASES_QUERY_KEY)
        return MutationResponse(toast=Toast(title="Item ontkoppeld"))

    async def unlink_email(self, case_id: str, email_id: str) -> MutationResponse:
        try:
            await self.upstream.delete(f"/api/cases/{case_id}/emails/{email_id}")
        except UpstreamError as e:
            raise e.with_toast("Ontkoppelen mislukt")

        self.cache.invalidate(self.user.id, CASES_QUERY_KEY)
        self._invalidate_emails(case_id)
        return MutationResponse(toast=Toast(title="Email ontkoppeld"))

    async def delete(self, case_id: str) -> MutationResponse:
        async with self.guard.pending(self.user.id, f"case:delete:{case_id}"):
            try:
                await self.upstream.delete(f"/api/cases/{case_id}")
            except UpstreamError as e:
                raise e.with_toast("Verwijderen mislukt")

        self.cache.invalidate(self.user.id, CASES_QUERY_KEY)
        logger.info(f"🗑️ Case {case_id} deleted by {self.user.email}")
        return MutationResponse(toast=Toast(title="Case verwijderd"))
