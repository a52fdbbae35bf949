"""Agenda service - appointment fetching, layout and mutations"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence

from fastapi.responses import Response

from ...auth import AuthUser
from ...cache import QueryCache
from ...errors import UpstreamError, ValidationFailed
from ...schemas import MutationResponse, Toast
from ...shared.dates import console_tz, iso_utc, local_now, to_local
from ...shared.validators import blank_to_none
from ...submit_guard import SubmitGuard
from ...upstream import UpstreamClient
from .layout import (
    MONTH_CELL_LIMIT,
    GridConfig,
    date_range,
    day_label,
    filter_by_type,
    header_text,
    layout_day,
    list_days,
    month_grid,
    navigate,
    now_line,
    scroll_target,
    starting_on,
    total_grid_height,
    week_days,
)
from .schemas import (
    AgendaView,
    Appointment,
    AppointmentForm,
    AppointmentType,
    DayColumn,
    DeleteScope,
    ListDay,
    MonthCell,
    ViewMode,
)

logger = logging.getLogger(__name__)

APPOINTMENTS_QUERY_KEY = ("/api/appointments",)
ALL_USERS = "all"
# How far in the past a new start time may lie
PAST_START_TOLERANCE = timedelta(minutes=5)


def appointments_query_key(time_min: str, time_max: str, user_filter: Optional[str]) -> tuple:
    return (*APPOINTMENTS_QUERY_KEY, time_min, time_max, user_filter or ALL_USERS)


def validate_appointment_times(form: AppointmentForm, now: datetime, tz=None) -> tuple[datetime, datetime]:
    """
    Resolve the form's start and end in console time and validate them.

    All-day appointments run from 00:00 on the start date to 23:59:59 on the
    end date. A missing end date means the start date.

    Raises:
        ValidationFailed: start more than five minutes in the past, or end not after start
    """
    tz = tz or console_tz()
    end_date = form.endDate or form.startDate

    if form.allDay:
        start = datetime.combine(form.startDate, time.min, tzinfo=tz)
        end = datetime.combine(end_date, time(23, 59, 59), tzinfo=tz)
    else:
        start = datetime.combine(form.startDate, _clock(form.startTime), tzinfo=tz)
        end = datetime.combine(end_date, _clock(form.endTime), tzinfo=tz)

    if start < to_local(now, tz) - PAST_START_TOLERANCE:
        raise ValidationFailed(
            "Ongeldige datum", "Je kunt geen afspraken in het verleden aanmaken of wijzigen."
        )
    if end <= start:
        raise ValidationFailed("Ongeldige tijden", "De eindtijd moet na de starttijd liggen.")
    return start, end


def _clock(value: str) -> time:
    return datetime.strptime(value, "%H:%M").time()


def to_payload(form: AppointmentForm, start: datetime, end: datetime) -> dict:
    """Upstream JSON body for a validated form"""
    return {
        "title": form.title,
        "type": AppointmentType(form.type).value,
        "startTime": iso_utc(start),
        "endTime": iso_utc(end),
        "allDay": form.allDay,
        "description": blank_to_none(form.description),
        "location": blank_to_none(form.location),
        "isRemote": form.isRemote,
        "meetingLink": blank_to_none(form.meetingLink),
        "recurrenceRule": blank_to_none(form.recurrence),
    }


class AgendaService:
    """Service layer for the agenda page"""

    def __init__(self, upstream: UpstreamClient, cache: QueryCache, guard: SubmitGuard, user: AuthUser):
        self.upstream = upstream
        self.cache = cache
        self.guard = guard
        self.user = user

    # ========================================================================
    # READS
    # ========================================================================

    async def fetch_appointments(self, view: ViewMode, ref: date, user_filter: Optional[str] = None) -> list[Appointment]:
        """Appointments in the view's fetch window, through the query cache"""
        params = date_range(view, ref).as_query_params()
        key = appointments_query_key(params["timeMin"], params["timeMax"], user_filter)
        if user_filter and user_filter != ALL_USERS:
            params["userId"] = user_filter

        async def load():
            return await self.upstream.get("/api/appointments", params=params)

        data = await self.cache.fetch(self.user.id, key, load) or {}
        return [Appointment(**event) for event in data.get("events", [])]

    async def view(
        self,
        view: ViewMode,
        ref: date,
        user_filter: Optional[str] = None,
        types: Optional[Sequence[AppointmentType]] = None,
        show_all_hours: bool = False,
        now: Optional[datetime] = None,
    ) -> AgendaView:
        view = ViewMode(view)
        now = to_local(now or local_now())
        today = now.date()
        config = GridConfig(show_all_hours=show_all_hours)

        appointments = filter_by_type(await self.fetch_appointments(view, ref, user_filter), types)
        params = date_range(view, ref).as_query_params()
        result = AgendaView(
            view=view,
            reference=ref,
            header=header_text(view, ref),
            timeMin=params["timeMin"],
            timeMax=params["timeMax"],
            showAllHours=show_all_hours,
            previousDate=navigate(view, ref, -1),
            nextDate=navigate(view, ref, 1),
        )

        if view in (ViewMode.WEEK, ViewMode.DAY):
            days = week_days(ref) if view == ViewMode.WEEK else [ref]
            result.gridHeight = total_grid_height(config)
            result.scrollTop = scroll_target(config, ref, now)
            result.columns = [
                DayColumn(
                    day=day,
                    isToday=day == today,
                    events=layout_day(appointments, day, config),
                    nowLine=now_line(config, now, day),
                )
                for day in days
            ]
        elif view == ViewMode.MONTH:
            result.weeks = [[self._month_cell(appointments, day, ref, today) for day in week] for week in month_grid(ref)]
        else:
            result.days = [
                ListDay(day=day, label=day_label(day), appointments=starting_on(appointments, day))
                for day in list_days(ref)
            ]

        logger.debug(f"📅 Agenda {view.value} view for {ref}: {len(appointments)} appointments")
        return result

    @staticmethod
    def _month_cell(appointments: list[Appointment], day: date, ref: date, today: date) -> MonthCell:
        day_appointments = starting_on(appointments, day)
        return MonthCell(
            day=day,
            inMonth=day.month == ref.month,
            isToday=day == today,
            appointments=day_appointments[:MONTH_CELL_LIMIT],
            moreCount=max(0, len(day_appointments) - MONTH_CELL_LIMIT),
        )

    async def export_ics(
        self,
        user_id: Optional[str] = None,
        type: Optional[str] = None,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
    ) -> Response:
        """Pass the upstream iCal export through unchanged"""
        upstream_response = await self.upstream.get_raw(
            "/api/appointments/export.ics",
            params={"userId": user_id or self.user.id, "type": type, "timeMin": time_min, "timeMax": time_max},
        )
        headers = {}
        if "content-disposition" in upstream_response.headers:
            headers["Content-Disposition"] = upstream_response.headers["content-disposition"]
        return Response(
            content=upstream_response.content,
            media_type=upstream_response.headers.get("content-type", "text/calendar"),
            headers=headers,
        )

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    async def create(self, form: AppointmentForm, now: Optional[datetime] = None) -> MutationResponse:
        start, end = validate_appointment_times(form, now or local_now())
        payload = to_payload(form, start, end)

        async with self.guard.pending(self.user.id, "appointment:create"):
            try:
                data = await self.upstream.post("/api/appointments", payload)
            except UpstreamError as e:
                raise e.with_toast("Fout bij aanmaken")

        self.cache.invalidate(self.user.id, APPOINTMENTS_QUERY_KEY)
        logger.info(f"✅ Appointment created by {self.user.email}: {form.title}")
        return MutationResponse(toast=Toast(title="Afspraak aangemaakt"), data=data)

    async def update(
        self,
        appointment: Appointment,
        form: AppointmentForm,
        scope: Optional[DeleteScope] = None,
        original_start: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MutationResponse:
        """
        Save an edit. Recurring appointments default to the whole series; a
        `single` scope edits one occurrence, identified by its original start.
        """
        start, end = validate_appointment_times(form, now or local_now())
        body = {"data": to_payload(form, start, end)}
        if scope:
            body["scope"] = DeleteScope(scope).value
        elif appointment.isRecurring:
            body["scope"] = DeleteScope.ALL.value
        if body.get("scope") == DeleteScope.SINGLE.value:
            original_start = original_start or appointment.originalStart
        if original_start:
            body["originalStart"] = original_start

        series_id = appointment.series_id
        async with self.guard.pending(self.user.id, f"appointment:update:{series_id}"):
            try:
                data = await self.upstream.patch(f"/api/appointments/{series_id}", body)
            except UpstreamError as e:
                raise e.with_toast("Fout bij bijwerken")

        self.cache.invalidate(self.user.id, APPOINTMENTS_QUERY_KEY)
        logger.info(f"✅ Appointment {series_id} updated by {self.user.email}")
        return MutationResponse(toast=Toast(title="Afspraak bijgewerkt"), data=data)

    async def delete(
        self,
        appointment_id: str,
        scope: Optional[DeleteScope] = None,
        original_start: Optional[str] = None,
    ) -> MutationResponse:
        """Delete an appointment; scope and originalStart go upstream verbatim"""
        params = {
            "scope": DeleteScope(scope).value if scope else None,
            "originalStart": original_start,
        }
        async with self.guard.pending(self.user.id, f"appointment:delete:{appointment_id}"):
            try:
                await self.upstream.delete(f"/api/appointments/{appointment_id}", params=params)
            except UpstreamError as e:
                raise e.with_toast("Fout bij verwijderen")

        self.cache.invalidate(self.user.id, APPOINTMENTS_QUERY_KEY)
        logger.info(f"🗑️ Appointment {appointment_id} deleted by {self.user.email} (scope={scope})")
        return MutationResponse(toast=Toast(title="Afspraak verwijderd"))
