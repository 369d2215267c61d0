import math
from datetime import datetime, timezone
from typing import Tuple


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def round_to_tenth(value: float) -> float:
    return round_half_up(value * 10) / 10


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def page_window(page: int, limit: int, max_limit: int) -> Tuple[int, int, int]:
    """Clamp page/limit and return (page, limit, offset)."""
    page = max(1, page)
    limit = min(max_limit, max(1, limit))
    return page, limit, (page - 1) * limit
