from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


@dataclass(frozen=True)
class MonthKey:
    year: int
    month: int

    @classmethod
    def of(cls, d: date) -> "MonthKey":
        return cls(d.year, d.month)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)


def month_window(months: int, *, today: Optional[date] = None) -> list[MonthKey]:
    """Return ``months`` consecutive month keys, oldest first, ending at today's month."""
    today = today or local_today()
    anchor = today.replace(day=1)
    return [MonthKey.of(add_months(anchor, -offset)) for offset in range(months - 1, -1, -1)]


TIME_RANGES = ("7days", "30days", "90days", "year", "all")


def time_range_start(slug: Optional[str], *, today: Optional[date] = None) -> Optional[date]:
    """First included day of an analytics preset; ``None`` means all time."""
    today = today or local_today()
    if slug == "7days":
        return today - timedelta(days=7)
    if slug == "30days":
        return today - timedelta(days=30)
    if slug == "90days":
        return today - timedelta(days=90)
    if slug == "year":
        try:
            return today.replace(year=today.year - 1)
        except ValueError:
            # Feb 29
            return today.replace(year=today.year - 1, day=28)
    return None


def parse_date_param(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value.strip())
