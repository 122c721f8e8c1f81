from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


def normalize_clock_time(value: object) -> object:
    """Coerce ``"9:00"``, ``"09:00:00"`` or a ``time`` into ``"HH:MM"``."""
    if value is None:
        return value
    if hasattr(value, "strftime"):
        return value.strftime("%H:%M")
    if not isinstance(value, str):
        raise ValueError("Time must be a string in HH:MM format")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise ValueError("Time must be in HH:MM format")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError("Time is out of range")
    return f"{hours:02d}:{minutes:02d}"


class Page(BaseModel, Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int
    total_pages: int

