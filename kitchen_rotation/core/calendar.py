"""ISO calendar helpers — week numbers and Monday-to-Sunday date ranges."""

from datetime import date, timedelta


def iso_week(for_date: date = None) -> tuple[int, int]:
    """Returns (iso_year, iso_week) for for_date (default today)."""
    if for_date is None:
        for_date = date.today()
    iso = for_date.isocalendar()
    return iso[0], iso[1]


def monday_of(year: int, week: int) -> date:
    """Returns the Monday of ISO week `week` in ISO year `year`.

    Raises ValueError for weeks the year does not have (e.g. week 53 of 2025).
    """
    return date.fromisocalendar(year, week, 1)


def week_date_range(year: int, week: int) -> tuple[str, str]:
    """Returns (monday, sunday) of an ISO week as YYYY-MM-DD strings."""
    monday = monday_of(year, week)
    return monday.isoformat(), (monday + timedelta(days=6)).isoformat()


def date_for_day_of_week(monday: date, day_of_week: int) -> date:
    """Date of a 0=Sunday day number within the week starting at monday."""
    offset = 6 if day_of_week == 0 else day_of_week - 1
    return monday + timedelta(days=offset)


def rotation_week_nr(calendar_week: int, week_count: int) -> int:
    """Rotation week (1..week_count) that a calendar week maps to."""
    return ((calendar_week - 1) % week_count) + 1
