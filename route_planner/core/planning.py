from datetime import date, timedelta

MAX_TRIP_DAYS = 14


def trip_day_count(start: date, end: date, max_days: int = MAX_TRIP_DAYS) -> int:
    """Inclusive number of days between start and end, clamped to [1, max_days]."""
    days = (end - start).days + 1
    return max(1, min(days, max_days))


def day_date(start: date, day_index: int) -> date:
    """Calendar date of a 1-based day index."""
    return start + timedelta(days=day_index - 1)
