"""Note domain schemas"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class NoteVisibility(str, Enum):
    INTERNAL = "internal"
    CUSTOMER = "customer"


class NoteCreate(BaseModel):
    content: str
    plainText: Optional[str] = None
    visibility: NoteVisibility = NoteVisibility.INTERNAL
    tagIds: list[str] = []


class NoteDelete(BaseModel):
    reason: Optional[str] = None


class NoteReaction(BaseModel):
    emoji: str


class NoteFilters(BaseModel):
    """Filters applied by the upstream (author, tags) and locally (search, dates)"""

    authorId: Optional[str] = None
    tagIds: list[str] = []
    search: Optional[str] = None
    dateFrom: Optional[date] = None
    dateTo: Optional[date] = None


class NoteGroups(BaseModel):
    pinned: list[dict] = []
    notes: list[dict] = []
    deleted: list[dict] = []
