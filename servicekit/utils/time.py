"""Time helpers."""
from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_uptime(seconds: float) -> str:
    """Render a duration compactly, e.g. ``1h2m3.5s``, ``4m0s`` or ``250ms``."""

    if seconds < 0:
        seconds = 0.0
    if seconds < 1:
        return f"{round(seconds * 1000)}ms"

    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    secs_text = f"{secs:.3f}".rstrip("0").rstrip(".")
    if hours:
        return f"{int(hours)}h{int(minutes)}m{secs_text}s"
    if minutes:
        return f"{int(minutes)}m{secs_text}s"
    return f"{secs_text}s"
