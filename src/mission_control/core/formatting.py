"""Human-readable time labels shared by the dashboard and report surfaces."""

import math
from datetime import datetime

from mission_control.core.metrics import HOUR, to_datetime


def format_relative_time(timestamp, reference_time) -> str:
    """Render how long ago timestamp was, e.g. "2d 2h ago", "5h ago", "12m ago"."""
    diff = to_datetime(reference_time) - to_datetime(timestamp)
    minutes = math.floor(diff.total_seconds() / 60)
    if minutes < 1:
        return "just now"

    hours = math.floor(diff / HOUR)
    if hours >= 24:
        days, rem_hours = divmod(hours, 24)
        return f"{days}d {rem_hours}h ago" if rem_hours else f"{days}d ago"
    if hours >= 1:
        return f"{hours}h ago"
    return f"{max(1, minutes)}m ago"


def format_hours_label(hours: float) -> str:
    """Compact age label for a duration in hours: "<1h", "7h", "3d", "3d 4h"."""
    if hours <= 0:
        return "<1h"
    days = math.floor(hours / 24)
    rem_hours = math.floor(hours % 24)
    if days > 0:
        return f"{days}d {rem_hours}h" if rem_hours else f"{days}d"
    return f"{max(1, math.floor(hours))}h"


def _clock(dt: datetime) -> str:
    hour = dt.hour % 12 or 12
    return f"{hour}:{dt:%M} {dt:%p}"


def format_date_full(value) -> str:
    """e.g. "Monday, October 19, 2026 at 3:04 PM" (UTC)."""
    dt = to_datetime(value)
    return f"{dt:%A, %B} {dt.day}, {dt.year} at {_clock(dt)}"


def format_date_time(value) -> str:
    """e.g. "Oct 19, 2026, 3:04 PM" (UTC)."""
    dt = to_datetime(value)
    return f"{dt:%b} {dt.day}, {dt.year}, {_clock(dt)}"
