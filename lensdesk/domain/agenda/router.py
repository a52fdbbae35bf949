"""Agenda router - FastAPI endpoints for the agenda page"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import AuthUser, get_current_user
from ...cache import QueryCache, get_query_cache
from ...schemas import MutationResponse
from ...shared.dates import local_today
from ...submit_guard import SubmitGuard, get_submit_guard
from ...upstream import UpstreamClient, get_upstream
from .schemas import AgendaView, AppointmentForm, AppointmentType, AppointmentUpdate, DeleteScope, ViewMode
from .service import AgendaService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agenda", tags=["Agenda"])


def get_agenda_service(
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
    guard: SubmitGuard = Depends(get_submit_guard),
    current_user: AuthUser = Depends(get_current_user),
) -> AgendaService:
    """Dependency injection for AgendaService"""
    return AgendaService(upstream, cache, guard, current_user)


@router.get("", response_model=AgendaView)
async def get_agenda(
    view: ViewMode = Query(ViewMode.WEEK),
    ref: Optional[date] = Query(None, alias="date"),
    user_filter: str = Query("all", alias="userFilter"),
    types: Optional[list[AppointmentType]] = Query(None),
    show_all_hours: bool = Query(False, alias="showAllHours"),
    service: AgendaService = Depends(get_agenda_service),
):
    """Appointments for one view mode laid out for rendering (defaults to this week)"""
    ref = ref or local_today()
    return await service.view(view, ref, user_filter, types, show_all_hours)


@router.get("/export.ics")
async def export_ics(
    user_id: Optional[str] = Query(None, alias="userId"),
    type: Optional[AppointmentType] = Query(None),
    time_min: Optional[str] = Query(None, alias="timeMin"),
    time_max: Optional[str] = Query(None, alias="timeMax"),
    service: AgendaService = Depends(get_agenda_service),
):
    """Download appointments as an iCal file"""
    return await service.export_ics(user_id, type.value if type else None, time_min, time_max)


@router.post("/appointments", response_model=MutationResponse)
async def create_appointment(data: AppointmentForm, service: AgendaService = Depends(get_agenda_service)):
    return await service.create(data)


@router.patch("/appointments", response_model=MutationResponse)
async def update_appointment(data: AppointmentUpdate, service: AgendaService = Depends(get_agenda_service)):
    """Save an edited appointment (the whole series for recurring ones unless scope is single)"""
    return await service.update(data.appointment, data.form, data.scope, data.originalStart)


@router.delete("/appointments/{appointment_id}", response_model=MutationResponse)
async def delete_appointment(
    appointment_id: str,
    scope: Optional[DeleteScope] = Query(None),
    original_start: Optional[str] = Query(None, alias="originalStart"),
    service: AgendaService = Depends(get_agenda_service),
):
    return await service.delete(appointment_id, scope, original_start)
