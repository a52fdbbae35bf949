from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ToastVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Toast(BaseModel):
    """User-facing notification rendered by the console UI"""

    title: str
    description: Optional[str] = None
    variant: ToastVariant = ToastVariant.DEFAULT

    @classmethod
    def error(cls, title: str, description: Optional[str] = None) -> "Toast":
        return cls(title=title, description=description, variant=ToastVariant.DESTRUCTIVE)


class MutationResponse(BaseModel):
    """Result of a console mutation: the upstream entity plus the toast to show"""

    toast: Toast
    data: Optional[Any] = None


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_LABELS = {
    Priority.LOW: "Laag",
    Priority.MEDIUM: "Normaal",
    Priority.HIGH: "Hoog",
    Priority.URGENT: "Urgent",
}
