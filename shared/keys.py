from datetime import date, datetime
from typing import Union

UV_PREFIX = "uv"
DAU_PREFIX = "dau"

def day_key(dt: Union[date, datetime]) -> str:
    """Format date to YYYYMMDD string for Redis keys."""
    return dt.strftime("%Y%m%d")

def K_UV(d: str) -> str:
    """Unique visitors HLL key for one day."""
    return f"{UV_PREFIX}:{d}"

def K_UV_RANGE(start: str, end: str) -> str:
    """Merged unique visitors HLL key for a date range."""
    return f"{UV_PREFIX}:{start}_{end}"

def K_DAU(d: str) -> str:
    """Daily active users bitmap key."""
    return f"{DAU_PREFIX}:{d}"

def K_DAU_RANGE(start: str, end: str) -> str:
    """Merged active users bitmap key for a date range."""
    return f"{DAU_PREFIX}:{start}_{end}"
