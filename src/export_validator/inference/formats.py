"""String format detection with fixed precedence: datetime > uuid > email > url."""

from __future__ import annotations

import re
from typing import Final

from export_validator.domain.schema_types import StringFormat

_DATETIME_RE: Final[re.Pattern[str]] = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
_UUID_RE: Final[re.Pattern[str]] = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_EMAIL_RE: Final[re.Pattern[str]] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL_RE: Final[re.Pattern[str]] = re.compile(r"^https?://")

# Order is the precedence; the first matching pattern wins.
FORMAT_PATTERNS: Final[tuple[tuple[StringFormat, re.Pattern[str]], ...]] = (
    (StringFormat.DATETIME, _DATETIME_RE),
    (StringFormat.UUID, _UUID_RE),
    (StringFormat.EMAIL, _EMAIL_RE),
    (StringFormat.URL, _URL_RE),
)


def detect_format(value: str) -> StringFormat | None:
    """Return the first matching format for ``value`` or ``None`` for plain strings."""

    for fmt, pattern in FORMAT_PATTERNS:
        if pattern.search(value):
            return fmt
    return None


__all__ = ["FORMAT_PATTERNS", "detect_format"]
