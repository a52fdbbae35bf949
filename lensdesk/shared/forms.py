"""Helpers for multipart form submissions (JSON form data plus files)"""

import logging
from typing import Optional, Sequence, Type, TypeVar

from fastapi import UploadFile
from pydantic import BaseModel, ValidationError

from ..errors import ValidationFailed
from ..upstream import FilePart
from .validators import check_file_count

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _invalid(model: Type[BaseModel], e: ValidationError) -> ValidationFailed:
    first = e.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    logger.warning(f"⚠️ Invalid {model.__name__} submission: {e.error_count()} errors")
    return ValidationFailed("Ongeldige invoer", f"{field}: {first.get('msg')}" if field else first.get("msg"))


def parse_form(model: Type[ModelT], raw: str) -> ModelT:
    """
    Validate the JSON `data` field of a multipart submission.

    Raises:
        ValidationFailed: when the JSON does not match the form model
    """
    try:
        return model.model_validate_json(raw)
    except ValidationError as e:
        raise _invalid(model, e)


def validate_form(model: Type[ModelT], data: dict) -> ModelT:
    """Same as parse_form, for form data that arrived already decoded"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise _invalid(model, e)


async def read_uploads(files: Optional[Sequence[UploadFile]]) -> list[FilePart]:
    """Read uploaded files into (filename, content, content_type) parts, enforcing the file limit"""
    files = [f for f in (files or []) if f.filename]
    check_file_count(len(files))
    return [(f.filename, await f.read(), f.content_type or "application/octet-stream") for f in files]
