"""Case domain schemas"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from ...schemas import Priority


class CaseStatus(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    WAITING_CUSTOMER = "waiting_customer"
    RESOLVED = "resolved"


class StatusOption(BaseModel):
    value: CaseStatus
    label: str
    emoji: str


# In display order; the status stepper highlights everything up to the current index
CASE_STATUS_OPTIONS = [
    StatusOption(value=CaseStatus.NEW, label="Nieuw", emoji="🆕"),
    StatusOption(value=CaseStatus.IN_PROGRESS, label="In Behandeling", emoji="🔄"),
    StatusOption(value=CaseStatus.WAITING_CUSTOMER, label="Wacht op Klant", emoji="⏳"),
    StatusOption(value=CaseStatus.RESOLVED, label="Opgelost", emoji="✅"),
]

PRIORITY_EMOJI = {
    Priority.LOW: "🟢",
    Priority.MEDIUM: "🟡",
    Priority.HIGH: "🟠",
    Priority.URGENT: "🔴",
}

CASE_TYPE_LABELS = {
    "return_request": "Retour",
    "complaint": "Klacht",
    "shipping_issue": "Verzending",
    "payment_issue": "Betaling",
    "general": "Algemeen",
    "other": "Overig",
}

CASE_SOURCE_LABELS = {
    "email": "Email",
    "shopify": "Shopify",
    "manual": "Handmatig",
}


class LinkType(str, Enum):
    EMAIL = "email"
    ORDER = "order"
    REPAIR = "repair"
    TODO = "todo"
    RETURN = "return"


class CaseUpdate(BaseModel):
    """Partial update; only the fields that are set are sent"""

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[CaseStatus] = None
    priority: Optional[Priority] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Titel is verplicht")
        return v.strip() if v is not None else v


class CaseLinkCreate(BaseModel):
    linkType: LinkType
    linkedId: str


class CaseDetail(BaseModel):
    case: dict
    statusLabel: str
    statusIndex: int
    priorityLabel: str
    priorityEmoji: Optional[str] = None
    typeLabel: Optional[str] = None
    sourceLabel: Optional[str] = None
    links: list[dict] = []
    events: list[dict] = []
    emails: list[dict] = []
    orders: list[dict] = []
    repairs: list[dict] = []
    todos: list[dict] = []
    returns: list[dict] = []
    notes: list[dict] = []
