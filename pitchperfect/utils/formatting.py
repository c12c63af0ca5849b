from __future__ import annotations
from typing import Optional, Union


def format_duration(seconds: int) -> str:
    """45 -> '0:45', 125 -> '2:05', 3725 -> '1:02:05'."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_count(value: Union[int, str, None]) -> str:
    """Abbreviate a view count: 999 -> '999', 1500 -> '1.5K', 2500000 -> '2.5M'."""
    n = int(value or 0)
    if n >= 1_000_000_000:
        return f"{n / 1_000_000_000:.1f}B"
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def truncate_description(text: Optional[str], limit: int = 200) -> str:
    return (text or "")[:limit] + "..."
