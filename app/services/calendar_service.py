from calendar import monthrange
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings


def get_tracker_timezone() -> ZoneInfo:
    try:
        return ZoneInfo(settings.TRACKER_TIMEZONE)
    except ZoneInfoNotFoundError:
        return ZoneInfo("UTC")


def today_local() -> date:
    return datetime.now(get_tracker_timezone()).date()


def week_start_for(day: date | datetime) -> date:
    """Monday on or before ``day``."""
    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def week_end_for(day: date | datetime) -> date:
    return week_start_for(day) + timedelta(days=6)


def previous_week_start(today: date) -> date:
    return week_start_for(today - timedelta(days=7))


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def weeks_overlapping(start: date, end: date) -> list[date]:
    """Monday of every week that overlaps [start, end]."""
    weeks: list[date] = []
    cursor = week_start_for(start)
    while cursor <= end:
        weeks.append(cursor)
        cursor += timedelta(days=7)
    return weeks


def round_half_up(value: float, places: int = 1) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))
