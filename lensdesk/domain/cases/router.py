"""Case router - FastAPI endpoints for support cases"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AuthUser, Role, require_roles
from ...cache import QueryCache, get_query_cache
from ...schemas import MutationResponse
from ...submit_guard import SubmitGuard, get_submit_guard
from ...upstream import UpstreamClient, get_upstream
from .schemas import CASE_STATUS_OPTIONS, CaseDetail, CaseLinkCreate, CaseUpdate, LinkType, StatusOption
from .service import CaseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cases", tags=["Cases"])


def get_case_service(
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
    guard: SubmitGuard = Depends(get_submit_guard),
    current_user: AuthUser = Depends(require_roles(Role.ADMIN, Role.SUPPORT)),
) -> CaseService:
    """Dependency injection for CaseService"""
    return CaseService(upstream, cache, guard, current_user)


@router.get("")
async def list_cases(service: CaseService = Depends(get_case_service)):
    return await service.list_cases()


@router.get("/statuses", response_model=list[StatusOption])
async def list_case_statuses():
    return CASE_STATUS_OPTIONS


@router.get("/{case_id}", response_model=CaseDetail)
async def get_case(case_id: str, service: CaseService = Depends(get_case_service)):
    return await service.detail(case_id)


@router.patch("/{case_id}", response_model=MutationResponse)
async def update_case(case_id: str, data: CaseUpdate, service: CaseService = Depends(get_case_service)):
    return await service.update(case_id, data)


@router.delete("/{case_id}", response_model=MutationResponse)
async def delete_case(case_id: str, service: CaseService = Depends(get_case_service)):
    return await service.delete(case_id)


# ============================================================================
# LINKED ITEMS
# ============================================================================


@router.get("/{case_id}/link-candidates")
async def link_candidates(
    case_id: str,
    link_type: LinkType = Query(..., alias="type"),
    search: Optional[str] = Query(None),
    service: CaseService = Depends(get_case_service),
):
    """Unlinked items of one type matching the search, for the link picker"""
    return await service.link_candidates(case_id, link_type, search)


@router.post("/{case_id}/links", response_model=MutationResponse)
async def link_item(case_id: str, data: CaseLinkCreate, service: CaseService = Depends(get_case_service)):
    return await service.link(case_id, data)


@router.delete("/{case_id}/links/{link_id}", response_model=MutationResponse)
async def unlink_item(case_id: str, link_id: str, service: CaseService = Depends(get_case_service)):
    return await service.unlink(case_id, link_id)


@router.delete("/{case_id}/emails/{email_id}", response_model=MutationResponse)
async def unlink_email(case_id: str, email_id: str, service: CaseService = Depends(get_case_service)):
    return await service.unlink_email(case_id, email_id)
