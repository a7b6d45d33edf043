"""Formatting utilities for display values."""

from datetime import timedelta


def format_sqft(value: float) -> str:
    """Format an area in square feet."""
    return f"{value or 0:,.2f} ft"


def format_weight(value: float) -> str:
    """Format a block weight in tons."""
    return f"{value or 0:,.2f} T"


def format_dimensions(length: float, width: float, height: float = None) -> str:
    """Format block or slab dimensions as 'L x W' or 'L x H x W'."""
    if height is None:
        return f"{round(length or 0)} x {round(width or 0)}"
    return f"{round(length or 0)} x {round(height or 0)} x {round(width or 0)}"


def format_elapsed(value: timedelta) -> str:
    """Format a duration as HH:MM:SS, showing zero for negative spans."""
    total = max(int(value.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_thickness(value: str) -> str:
    """Normalize a thickness class for reports ('18' -> '18 MM')."""
    if not value:
        return ""
    text = str(value).strip().upper()
    return text if "MM" in text else f"{text} MM"
