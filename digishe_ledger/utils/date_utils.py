"""Date manipulation utilities"""

from datetime import date, timedelta
from typing import List


def generate_date_range(start: date, end: date) -> List[date]:
    """Generate list of dates from start to end (inclusive)"""
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(days)]


def last_n_days(n: int, today: date | None = None) -> List[date]:
    """The n calendar days ending today, oldest first"""
    end = today or date.today()
    return generate_date_range(end - timedelta(days=n - 1), end)


def short_weekday(day: date) -> str:
    """Mon, Tue, ... independent of locale"""
    return ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")[day.weekday()]
