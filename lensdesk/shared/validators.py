"""Shared validation utilities"""

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

from ..config import MAX_UPLOAD_FILES
from ..errors import ValidationFailed

# Select inputs use this sentinel for "nothing selected"
NONE_SELECTED = "none"


def blank_to_none(value: Any) -> Any:
    """Map empty strings and the 'none' select sentinel to None"""
    if value is None:
        return None
    if isinstance(value, str) and (not value.strip() or value == NONE_SELECTED):
        return None
    return value


def require(value: Optional[str], title: str, description: Optional[str] = None) -> str:
    """
    Reject a missing or blank required field.

    Raises:
        ValidationFailed: with the given toast title
    """
    if value is None or not str(value).strip():
        raise ValidationFailed(title, description)
    return value


def check_file_count(new_count: int, existing_count: int = 0, limit: int = MAX_UPLOAD_FILES) -> None:
    """Reject uploads that would exceed the per-request file limit"""
    if new_count + existing_count > limit:
        raise ValidationFailed("Te veel bestanden", f"Je kunt maximaal {limit} bestanden uploaden.")


def to_cents(amount: Optional[float]) -> Optional[int]:
    """
    Convert a euro amount to integer cents.

    Zero and empty amounts become None so they are left out of payloads.
    """
    if not amount:
        return None
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def from_cents(cents: Optional[int]) -> float:
    if not cents:
        return 0.0
    return cents / 100


def natural_sort_key(value: str) -> list:
    """Sort key that orders embedded numbers numerically ('L2' < 'L10')"""
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", value or "")]


def is_valid_file_url(url: Optional[str]) -> bool:
    """Filter out broken stored file references"""
    if not url:
        return False
    return "undefined" not in url and not url.endswith("-")


def clean_file_urls(urls: Optional[Sequence[str]]) -> list[str]:
    if not isinstance(urls, (list, tuple)):
        return []
    return [u for u in urls if is_valid_file_url(u)]
