"""Input validation for hysync.

This module provides validation functions for account and sync inputs.
All validators raise ValidationError with descriptive messages.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple


class ValidationError(ValueError):
    """Validation error with field and message attributes."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def __repr__(self) -> str:
        return f"ValidationError(field='{self.field}', message='{self.message}')"


__all__ = [
    "ValidationError",
    "validate_email",
    "validate_password",
    "validate_video_id",
    "validate_title",
    "validate_pagination",
    "validate_item_list",
]

MAX_EMAIL_LENGTH = 254
MAX_VIDEO_ID_LENGTH = 64
MAX_TITLE_LENGTH = 500
MAX_PAGE_LIMIT = 100

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# At least 8 chars with upper, lower, digit and one of @$!%*?&
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$"
)
VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_email(value: Any) -> str:
    """Validate an email address and return it stripped."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("email", "is required")
    value = value.strip()
    if len(value) > MAX_EMAIL_LENGTH:
        raise ValidationError("email", f"must be at most {MAX_EMAIL_LENGTH} characters")
    if not EMAIL_PATTERN.match(value):
        raise ValidationError("email", "is not a valid email address")
    return value


def validate_password(value: Any) -> str:
    """Validate password strength."""
    if not isinstance(value, str) or not value:
        raise ValidationError("password", "is required")
    if not PASSWORD_PATTERN.match(value):
        raise ValidationError(
            "password",
            "must be at least 8 characters and contain uppercase, lowercase, "
            "number, and special character (@$!%*?&)",
        )
    return value


def validate_video_id(value: Any, field_name: str = "videoId") -> str:
    """Validate a YouTube video id."""
    if not isinstance(value, str) or not value:
        raise ValidationError(field_name, "is required")
    if len(value) > MAX_VIDEO_ID_LENGTH:
        raise ValidationError(
            field_name, f"must be at most {MAX_VIDEO_ID_LENGTH} characters"
        )
    if not VIDEO_ID_PATTERN.match(value):
        raise ValidationError(field_name, f"contains invalid characters: {value!r}")
    return value


def validate_title(value: Any, field_name: str = "title") -> str:
    """Validate a non-empty display title."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field_name, "is required")
    if len(value) > MAX_TITLE_LENGTH:
        raise ValidationError(field_name, f"must be at most {MAX_TITLE_LENGTH} characters")
    return value


def validate_pagination(
    page: Optional[str], limit: Optional[str]
) -> Tuple[int, int]:
    """Parse and validate page/limit query parameters."""
    try:
        page_num = int(page) if page is not None else 1
    except ValueError:
        raise ValidationError("page", f"must be an integer, got {page!r}") from None
    try:
        limit_num = int(limit) if limit is not None else 20
    except ValueError:
        raise ValidationError("limit", f"must be an integer, got {limit!r}") from None

    if page_num < 1:
        raise ValidationError("page", "must be at least 1")
    if limit_num < 1 or limit_num > MAX_PAGE_LIMIT:
        raise ValidationError("limit", f"must be between 1 and {MAX_PAGE_LIMIT}")
    return page_num, limit_num


def validate_item_list(data: Optional[Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    """Extract a list of objects from a request body.

    Raises:
        ValidationError: If the body is missing, the key is absent, or the
            value is not a list of objects.
    """
    if not isinstance(data, dict):
        raise ValidationError("body", "missing JSON request body")
    items = data.get(key)
    if not isinstance(items, list):
        raise ValidationError(key, "must be a list")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(key, f"item {i} must be an object")
    return items
