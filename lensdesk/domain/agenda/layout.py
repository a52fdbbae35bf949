"""
Agenda date ranges and time-grid layout.

Week and day views draw appointments on a vertical time axis. Unless every
hour is shown, the hours before and after the working day are squeezed into
one fixed-height band each, and positions inside a band are interpolated by
the fraction of the band that has elapsed.

All day arithmetic happens in the console timezone (CONSOLE_TIMEZONE).
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from ...config import AGENDA_COLLAPSED_HEIGHT, AGENDA_HOUR_HEIGHT, AGENDA_WORK_END, AGENDA_WORK_START
from ...shared.dates import console_tz, iso_utc, start_of_day, to_local
from .schemas import TYPE_CONFIG, Appointment, AppointmentType, EventBlock, ViewMode

# Smallest block height (px) that stays clickable
MIN_BLOCK_HEIGHT = 20
# Event blocks stack below this; dialogs render at DIALOG_Z_INDEX
MAX_EVENT_Z_INDEX = 30
DIALOG_Z_INDEX = 50
# Blocks shorter than this (minutes) hide their time label
TIME_LABEL_MIN_MINUTES = 45

LIST_VIEW_DAYS = 14
MONTH_CELL_LIMIT = 3

MONTH_NAMES = [
    "januari", "februari", "maart", "april", "mei", "juni",
    "juli", "augustus", "september", "oktober", "november", "december",
]
MONTH_ABBREVIATIONS = ["jan", "feb", "mrt", "apr", "mei", "jun", "jul", "aug", "sep", "okt", "nov", "dec"]
DAY_NAMES = ["maandag", "dinsdag", "woensdag", "donderdag", "vrijdag", "zaterdag", "zondag"]


@dataclass(frozen=True)
class GridConfig:
    work_start: int = AGENDA_WORK_START
    work_end: int = AGENDA_WORK_END
    hour_height: float = AGENDA_HOUR_HEIGHT
    collapsed_height: float = AGENDA_COLLAPSED_HEIGHT
    show_all_hours: bool = False

    @property
    def work_span(self) -> int:
        return self.work_end - self.work_start


@dataclass(frozen=True)
class DateRange:
    """Half-open fetch window [start, end)"""

    start: datetime
    end: datetime

    def as_query_params(self) -> dict:
        return {"timeMin": iso_utc(self.start), "timeMax": iso_utc(self.end)}


# ============================================================================
# DATE RANGES AND NAVIGATION
# ============================================================================


def week_start(ref: date) -> date:
    """Monday of the ISO week containing ref"""
    return ref - timedelta(days=ref.weekday())


def date_range(view: ViewMode, ref: date, tz: Optional[ZoneInfo] = None) -> DateRange:
    """Fetch window for a view mode around the reference date"""
    view = ViewMode(view)
    if view == ViewMode.MONTH:
        first = ref.replace(day=1)
        start, end = first - relativedelta(months=1), first + relativedelta(months=2)
    elif view == ViewMode.WEEK:
        start = week_start(ref)
        end = start + timedelta(days=7)
    elif view == ViewMode.DAY:
        start, end = ref, ref + timedelta(days=1)
    else:
        start, end = ref, ref + timedelta(days=LIST_VIEW_DAYS)
    return DateRange(start_of_day(start, tz), start_of_day(end, tz))


def navigate(view: ViewMode, ref: date, step: int) -> date:
    """Move the reference date one page (step=+1) or back (step=-1)"""
    view = ViewMode(view)
    if view == ViewMode.MONTH:
        return ref + relativedelta(months=step)
    if view == ViewMode.DAY:
        return ref + timedelta(days=step)
    # week and list both page by a week
    return ref + timedelta(days=7 * step)


def week_days(ref: date) -> list[date]:
    monday = week_start(ref)
    return [monday + timedelta(days=i) for i in range(7)]


def list_days(ref: date) -> list[date]:
    return [ref + timedelta(days=i) for i in range(LIST_VIEW_DAYS)]


def month_grid(ref: date) -> list[list[date]]:
    """Monday-start weeks covering every day of ref's month"""
    first = ref.replace(day=1)
    last = first + relativedelta(months=1) - timedelta(days=1)
    day = week_start(first)
    sunday = week_start(last) + timedelta(days=6)

    weeks = []
    while day <= sunday:
        weeks.append([day + timedelta(days=i) for i in range(7)])
        day += timedelta(days=7)
    return weeks


def header_text(view: ViewMode, ref: date) -> str:
    view = ViewMode(view)
    if view == ViewMode.MONTH:
        return f"{MONTH_NAMES[ref.month - 1]} {ref.year}"
    if view == ViewMode.WEEK:
        monday = week_start(ref)
        sunday = monday + timedelta(days=6)
        return f"{_short_date(monday)} - {_short_date(sunday)} {sunday.year}"
    if view == ViewMode.DAY:
        return f"{DAY_NAMES[ref.weekday()]} {ref.day} {MONTH_NAMES[ref.month - 1]} {ref.year}"
    last = ref + timedelta(days=LIST_VIEW_DAYS)
    return f"{_short_date(ref)} - {_short_date(last)} {last.year}"


def day_label(day: date) -> str:
    return f"{DAY_NAMES[day.weekday()]} {day.day} {MONTH_NAMES[day.month - 1]}"


def _short_date(day: date) -> str:
    return f"{day.day} {MONTH_ABBREVIATIONS[day.month - 1]}"


# ============================================================================
# TIME GRID
# ============================================================================


def total_grid_height(config: GridConfig) -> float:
    if config.show_all_hours:
        return 24 * config.hour_height
    return 2 * config.collapsed_height + config.work_span * config.hour_height


def y_position(config: GridConfig, hour: int, minute: int = 0) -> float:
    """
    Vertical offset (px) of a clock time on the grid.

    hour=24, minute=0 is the end of the day and maps to the total grid height.
    """
    t = hour + minute / 60
    if config.show_all_hours:
        return t * config.hour_height

    if t < config.work_start:
        return t / config.work_start * config.collapsed_height

    if t < config.work_end:
        return config.collapsed_height + (t - config.work_start) * config.hour_height

    work_bottom = config.collapsed_height + config.work_span * config.hour_height
    after_work_hours = 24 - config.work_end
    if after_work_hours == 0:
        return work_bottom + config.collapsed_height
    return work_bottom + (t - config.work_end) / after_work_hours * config.collapsed_height


def now_line(config: GridConfig, now: datetime, day: date) -> Optional[float]:
    """Position of the current-time line, only in today's column"""
    now = to_local(now)
    if now.date() != day:
        return None
    return y_position(config, now.hour, now.minute)


def scroll_target(config: GridConfig, ref: date, now: datetime) -> float:
    """Initial scroll offset: an hour before now on today, else the start of work"""
    now = to_local(now)
    hour = config.work_start
    if ref == now.date():
        hour = max(now.hour - 1, config.work_start)
    return y_position(config, hour, 0)


# ============================================================================
# EVENT PLACEMENT
# ============================================================================


def is_multi_day(start: datetime, end: datetime, tz: Optional[ZoneInfo] = None) -> bool:
    return to_local(start, tz).date() != to_local(end, tz).date()


def day_segment(
    start: datetime, end: datetime, day: date, tz: Optional[ZoneInfo] = None
) -> Optional[tuple[datetime, datetime]]:
    """
    The part of [start, end) that falls on `day`, or None.

    The first day runs from the real start to the next midnight, middle days
    cover the whole day and the last day runs from midnight to the real end,
    so the segments of all days join up to exactly [start, end).
    """
    tz = tz or console_tz()
    start, end = to_local(start, tz), to_local(end, tz)
    day_begin = start_of_day(day, tz)
    day_end = start_of_day(day + timedelta(days=1), tz)

    if start == end:
        # Zero-length appointments still get a (minimum height) block on their day
        return (start, end) if start.date() == day else None

    segment_start, segment_end = max(start, day_begin), min(end, day_end)
    if segment_start >= segment_end:
        return None
    return segment_start, segment_end


def _minutes_into_day(moment: datetime, day: date, tz: ZoneInfo) -> int:
    return int((moment - start_of_day(day, tz)).total_seconds() // 60)


def _time_label(
    start: datetime, end: datetime, multi_day: bool, first_day: bool, last_day: bool
) -> str:
    if not multi_day:
        return f"{start:%H:%M} - {end:%H:%M}"
    if first_day:
        return f"{start:%H:%M} →"
    if last_day:
        return f"→ {end:%H:%M}"
    return "Hele dag"


def place_event(
    appointment: Appointment, day: date, config: GridConfig, tz: Optional[ZoneInfo] = None
) -> Optional[EventBlock]:
    """
    Position one appointment in a day column.

    Returns None when the appointment does not touch the day, or when the
    off-hours bands are collapsed and the day's segment lies outside working
    hours.
    """
    tz = tz or console_tz()
    segment = day_segment(appointment.startTime, appointment.endTime, day, tz)
    if segment is None:
        return None

    start, end = to_local(appointment.startTime, tz), to_local(appointment.endTime, tz)
    segment_start, segment_end = segment
    start_minutes = _minutes_into_day(segment_start, day, tz)
    end_minutes = _minutes_into_day(segment_end, day, tz)

    if not config.show_all_hours and (
        start_minutes >= config.work_end * 60 or end_minutes < config.work_start * 60
    ):
        return None

    top = y_position(config, *divmod(start_minutes, 60))
    bottom = y_position(config, *divmod(end_minutes, 60))
    height = max(bottom - top, MIN_BLOCK_HEIGHT)

    multi_day = is_multi_day(start, end, tz)
    first_day = segment_start == start
    last_day = segment_end == end
    type_config = TYPE_CONFIG[AppointmentType(appointment.type)]

    label = None
    if end_minutes - start_minutes >= TIME_LABEL_MIN_MINUTES:
        label = _time_label(start, end, multi_day, first_day, last_day)

    return EventBlock(
        appointment=appointment,
        title=("↳ " if multi_day and not first_day else "") + appointment.title,
        color=appointment.color or type_config["color"],
        top=top,
        height=height,
        zIndex=max(1, MAX_EVENT_Z_INDEX - int(height // MIN_BLOCK_HEIGHT)),
        isMultiDay=multi_day,
        isFirstDay=first_day,
        isLastDay=last_day,
        timeLabel=label,
    )


def layout_day(
    appointments: Iterable[Appointment], day: date, config: GridConfig, tz: Optional[ZoneInfo] = None
) -> list[EventBlock]:
    blocks = (place_event(a, day, config, tz) for a in appointments)
    return sorted((b for b in blocks if b is not None), key=lambda b: (b.top, -b.height))


# ============================================================================
# FILTERING AND GROUPING
# ============================================================================


def filter_by_type(
    appointments: Iterable[Appointment], types: Optional[Sequence[AppointmentType]] = None
) -> list[Appointment]:
    """Keep appointments of the selected types; None selects every type"""
    if types is None:
        return list(appointments)
    selected = {AppointmentType(t) for t in types}
    return [a for a in appointments if AppointmentType(a.type) in selected]


def starting_on(appointments: Iterable[Appointment], day: date, tz: Optional[ZoneInfo] = None) -> list[Appointment]:
    """Appointments whose start falls on `day`, in start order (month and list views)"""
    matches = [a for a in appointments if to_local(a.startTime, tz).date() == day]
    return sorted(matches, key=lambda a: to_local(a.startTime, tz))
