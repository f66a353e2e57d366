"""Utility functions for webmail-core."""

from datetime import date, datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]
Today = Callable[[], date]

_UNITS = ("KB", "MB", "GB")


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def local_today() -> date:
    """Return the current calendar day in the process' local timezone."""
    return date.today()


def ensure_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_size(num_bytes: int) -> str:
    """Render a byte count with a human unit.

    Args:
        num_bytes: Size in bytes.

    Returns:
        A string such as ``"512 B"`` or ``"1.5 MB"``.
    """
    if num_bytes < 1024:
        return f"{num_bytes} B"

    size = float(num_bytes)
    for unit in _UNITS[:-1]:
        size /= 1024.0
        if size < 1024.0:
            return f"{size:.1f} {unit}"
    return f"{size / 1024.0:.1f} {_UNITS[-1]}"
