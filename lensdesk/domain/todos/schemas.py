"""Todo domain schemas - Pydantic models for validation"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from ...schemas import Priority


class TodoCategory(str, Enum):
    ORDERS = "orders"
    PURCHASING = "purchasing"
    MARKETING = "marketing"
    ADMIN = "admin"
    OTHER = "other"


class TodoStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TodoScope(str, Enum):
    """Which todos a list shows: everyone's or only the current user's"""

    ALL = "all"
    MY = "my"


class TodoForm(BaseModel):
    """Schema for creating or editing a todo"""

    title: str
    description: Optional[str] = None
    category: TodoCategory = TodoCategory.OTHER
    priority: Priority = Priority.MEDIUM
    dueDate: Optional[datetime] = None
    assignedUserId: Optional[str] = None
    orderId: Optional[str] = None
    caseId: Optional[str] = None
    customerId: Optional[str] = None
    repairId: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if not v or not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class TodoStatusUpdate(BaseModel):
    status: TodoStatus
