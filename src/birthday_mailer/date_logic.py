from __future__ import annotations

from datetime import date, datetime

ALLOWED_LEAP_DAY_RULES = {"feb28", "mar1"}


class InvalidDateOfBirthError(ValueError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def parse_date_of_birth(raw_value: str, today: date) -> date:
    """Parse ``YYYY-MM-DD`` (or an ISO datetime, using its date part)."""
    text = raw_value.strip()
    try:
        if len(text) > 10:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        else:
            parsed = date.fromisoformat(text)
    except ValueError as exc:
        raise InvalidDateOfBirthError(f"Invalid date of birth: {raw_value!r}") from exc

    if parsed > today:
        raise InvalidDateOfBirthError(f"Date of birth is in the future: {parsed.isoformat()}")
    return parsed


def birthday_date_for_year(month: int, day: int, year: int, leap_day_rule: str) -> date:
    if month == 2 and day == 29 and not is_leap_year(year):
        if leap_day_rule == "feb28":
            return date(year, 2, 28)
        if leap_day_rule == "mar1":
            return date(year, 3, 1)
        raise InvalidDateOfBirthError(f"Unsupported leap day rule: {leap_day_rule}")
    return date(year, month, day)


def birthdays_celebrated_on(today: date, leap_day_rule: str) -> list[tuple[int, int]]:
    """Return the (month, day) pairs of birth dates whose birthday falls on ``today``."""
    month_days = [(today.month, today.day)]
    if not is_leap_year(today.year) and birthday_date_for_year(2, 29, today.year, leap_day_rule) == today:
        month_days.append((2, 29))
    return month_days

