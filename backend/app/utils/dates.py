"""Date range helpers for history queries."""

from datetime import date


def resolve_date_range(start: date | None, end: date | None) -> tuple[date, date]:
    """
    Fill in missing history query bounds.

    Each bound defaults on its own: a missing start becomes date.min and a
    missing end becomes date.max. A supplied bound is never replaced.
    Both ends are inclusive.

    Usage:
        start, end = resolve_date_range(start_date, end_date)
    """
    return (start or date.min, end or date.max)
