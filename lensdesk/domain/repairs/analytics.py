"""Repair analytics - dashboard reductions over the repair list"""

from collections import Counter
from datetime import datetime
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel

from ...schemas import Priority
from ...shared.dates import local_now, parse_timestamp, to_local
from .schemas import CLOSED_STATUSES, FINISHED_STATUSES, PENDING_STATUSES, RepairStatus

TOP_TECHNICIANS = 3
TOP_ISSUES = 5
UNKNOWN_TECHNICIAN = "Onbekend"

_CLOSED = {s.value for s in CLOSED_STATUSES}
_PENDING = {s.value for s in PENDING_STATUSES}
_FINISHED = {s.value for s in FINISHED_STATUSES}


class TechnicianCount(BaseModel):
    userId: str
    name: str
    count: int


class IssueCount(BaseModel):
    category: str
    count: int


class RepairAnalytics(BaseModel):
    total: int
    pending: int
    completed: int
    canceled: int
    overdue: list[dict]
    overdueCount: int
    averageRepairDays: int
    topTechnicians: list[TechnicianCount]
    topIssues: list[IssueCount]
    maxIssueCount: int
    urgentPending: int


def _moment(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return to_local(value)
    return parse_timestamp(value)


def is_overdue(repair: dict, now: Optional[datetime] = None) -> bool:
    """SLA deadline passed while the repair is still open"""
    deadline = _moment(repair.get("slaDeadline"))
    if deadline is None or repair.get("status") in _CLOSED:
        return False
    return deadline < to_local(now or local_now())


def average_repair_days(repairs: Iterable[dict]) -> int:
    """Mean days from creation to last update over finished repairs, rounded"""
    durations = []
    for repair in repairs:
        if repair.get("status") not in _FINISHED:
            continue
        created, updated = _moment(repair.get("createdAt")), _moment(repair.get("updatedAt"))
        if created is None or updated is None:
            continue
        durations.append(max(0.0, (updated - created).total_seconds() / 86400))
    if not durations:
        return 0
    return round(sum(durations) / len(durations))


def technician_name(user: Optional[dict]) -> str:
    if not user:
        return UNKNOWN_TECHNICIAN
    name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()
    return name or user.get("username") or UNKNOWN_TECHNICIAN


def top_technicians(repairs: Iterable[dict], users: Sequence[dict], limit: int = TOP_TECHNICIANS) -> list[TechnicianCount]:
    counts = Counter(r["assignedUserId"] for r in repairs if r.get("assignedUserId"))
    by_id = {u.get("id"): u for u in users}
    return [
        TechnicianCount(userId=user_id, name=technician_name(by_id.get(user_id)), count=count)
        for user_id, count in counts.most_common(limit)
    ]


def top_issues(repairs: Iterable[dict], limit: int = TOP_ISSUES) -> list[IssueCount]:
    counts = Counter(r["issueCategory"] for r in repairs if r.get("issueCategory"))
    return [IssueCount(category=category, count=count) for category, count in counts.most_common(limit)]


def summarize(repairs: Sequence[dict], users: Sequence[dict] = (), now: Optional[datetime] = None) -> RepairAnalytics:
    """All dashboard figures for one repair list"""
    now = now or local_now()
    overdue = [r for r in repairs if is_overdue(r, now)]
    issues = top_issues(repairs)
    return RepairAnalytics(
        total=len(repairs),
        pending=sum(1 for r in repairs if r.get("status") in _PENDING),
        completed=sum(1 for r in repairs if r.get("status") in _FINISHED),
        canceled=sum(1 for r in repairs if r.get("status") == RepairStatus.CANCELED.value),
        overdue=overdue,
        overdueCount=len(overdue),
        averageRepairDays=average_repair_days(repairs),
        topTechnicians=top_technicians(repairs, users),
        topIssues=issues,
        maxIssueCount=max((i.count for i in issues), default=1),
        urgentPending=sum(
            1 for r in repairs if r.get("priority") == Priority.URGENT.value and r.get("status") in _PENDING
        ),
    )
