"""Agenda domain schemas - appointments, the appointment form and grid layout results"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import NONE_SELECTED


class AppointmentType(str, Enum):
    AFSPRAAK = "afspraak"
    INTERN = "intern"
    TAAK = "taak"
    BLOK = "blok"


TYPE_CONFIG = {
    AppointmentType.AFSPRAAK: {"color": "#3B82F6", "label": "Afspraak"},
    AppointmentType.INTERN: {"color": "#8B5CF6", "label": "Intern"},
    AppointmentType.TAAK: {"color": "#F97316", "label": "Taak"},
    AppointmentType.BLOK: {"color": "#9CA3AF", "label": "Blok"},
}


class ViewMode(str, Enum):
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    LIST = "list"


class DeleteScope(str, Enum):
    """Which occurrences of a recurring series a mutation applies to"""

    SINGLE = "single"
    ALL = "all"


class Appointment(BaseModel):
    """Appointment as returned by the upstream API"""

    id: str
    seriesId: Optional[str] = None
    title: str
    type: AppointmentType = AppointmentType.AFSPRAAK
    startTime: datetime
    endTime: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    color: Optional[str] = None
    allDay: bool = False
    isRemote: bool = False
    meetingLink: Optional[str] = None
    recurrenceRule: Optional[str] = None
    assignedTo: Optional[str] = None
    createdBy: Optional[str] = None
    orderId: Optional[str] = None
    customerId: Optional[str] = None
    caseId: Optional[str] = None
    repairId: Optional[str] = None
    isRecurring: bool = False
    originalStart: Optional[str] = None

    @property
    def series_id(self) -> str:
        return self.seriesId or self.id


class AppointmentForm(BaseModel):
    """Create/edit form; dates are yyyy-MM-dd and times HH:mm in console time"""

    title: str
    type: AppointmentType = AppointmentType.AFSPRAAK
    startDate: date
    startTime: str = "09:00"
    endDate: Optional[date] = None
    endTime: str = "09:30"
    allDay: bool = False
    description: Optional[str] = None
    location: Optional[str] = None
    isRemote: bool = False
    meetingLink: Optional[str] = None
    recurrence: str = NONE_SELECTED

    @field_validator("endDate", mode="before")
    @classmethod
    def empty_end_date(cls, v):
        if v == "":
            return None
        return v

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_clock(cls, v):
        try:
            datetime.strptime(v, "%H:%M")
        except ValueError:
            raise ValueError(f"Invalid time '{v}', expected HH:MM")
        return v


class AppointmentUpdate(BaseModel):
    """Edit request: the appointment being edited plus the new form values"""

    appointment: Appointment
    form: AppointmentForm
    # Recurring series only; None edits the whole series
    scope: Optional[DeleteScope] = None
    originalStart: Optional[str] = None


class EventBlock(BaseModel):
    """One appointment segment positioned on a week/day time grid column"""

    appointment: Appointment
    title: str
    color: str
    top: float
    height: float
    zIndex: int
    isMultiDay: bool
    isFirstDay: bool
    isLastDay: bool
    timeLabel: Optional[str] = None


class DayColumn(BaseModel):
    day: date
    isToday: bool
    events: list[EventBlock] = []
    nowLine: Optional[float] = None


class MonthCell(BaseModel):
    day: date
    inMonth: bool
    isToday: bool
    appointments: list[Appointment] = []
    moreCount: int = 0


class ListDay(BaseModel):
    day: date
    label: str
    appointments: list[Appointment] = []


class AgendaView(BaseModel):
    """Everything the agenda page renders for one view mode and reference date"""

    view: ViewMode
    reference: date
    header: str
    timeMin: str
    timeMax: str
    showAllHours: bool
    previousDate: Optional[date] = None
    nextDate: Optional[date] = None
    gridHeight: Optional[float] = None
    scrollTop: Optional[float] = None
    columns: list[DayColumn] = []
    weeks: list[list[MonthCell]] = []
    days: list[ListDay] = []
