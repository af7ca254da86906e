from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta
from typing import Iterator, List

WEEKLY_DAYS = 7
BIWEEKLY_DAYS = 14
SEMIMONTHLY_DAY = 15
SUPPORTED_CADENCES = {"weekly", "biweekly", "semimonthly", "monthly"}

PAY_PERIODS_PER_YEAR = {
    "weekly": 52,
    "biweekly": 26,
    "semimonthly": 24,
    "monthly": 12,
}


def parse_month_id(month_id: str) -> tuple[int, int]:
    raw = (month_id or "").strip()
    parts = raw.split("-")
    if len(parts) != 2 or len(parts[0]) != 4 or len(parts[1]) != 2:
        raise ValueError(f"Month id must be formatted as YYYY-MM: {month_id!r}")
    try:
        year, month = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise ValueError(f"Month id must be formatted as YYYY-MM: {month_id!r}") from exc
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range in month id: {month_id!r}")
    return year, month


def format_month_id(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_id_for(value: date) -> str:
    return format_month_id(value.year, value.month)


def days_in_month(month_id: str) -> int:
    year, month = parse_month_id(month_id)
    return monthrange(year, month)[1]


def month_bounds(month_id: str) -> tuple[date, date]:
    year, month = parse_month_id(month_id)
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def previous_month_id(month_id: str) -> str:
    year, month = parse_month_id(month_id)
    if month == 1:
        return format_month_id(year - 1, 12)
    return format_month_id(year, month - 1)


def month_range(start_id: str, end_id: str) -> List[str]:
    year, month = parse_month_id(start_id)
    end = parse_month_id(end_id)
    months: List[str] = []
    while (year, month) <= end:
        months.append(format_month_id(year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def iter_month_days(month_id: str) -> Iterator[date]:
    start, end = month_bounds(month_id)
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def normalize_cadence(cadence: str) -> str:
    normalized = "".join(ch for ch in (cadence or "").strip().lower() if ch.isalnum())
    if normalized == "byweekly":
        normalized = "biweekly"
    if normalized not in SUPPORTED_CADENCES:
        raise ValueError("Only weekly, biweekly, semimonthly, or monthly cadences are supported.")
    return normalized


def pay_periods_per_year(cadence: str) -> int:
    return PAY_PERIODS_PER_YEAR[normalize_cadence(cadence)]


def schedule_dates(
    month_id: str,
    cadence: str,
    anchor_date: date | None = None,
    day_rule: str | int | None = None,
) -> List[date]:
    """Return the dates a cadence falls on inside ``month_id``, in order.

    Weekly and biweekly cadences are phased by ``anchor_date``, which may sit
    in an earlier month. Semimonthly always lands on the 15th and the last
    day. Monthly uses ``day_rule`` ("12", "day:12", "last"), falling back to
    the anchor's day of month when the rule is missing or unparseable.
    """
    normalized = normalize_cadence(cadence)
    start, end = month_bounds(month_id)
    if normalized in {"weekly", "biweekly"}:
        interval = WEEKLY_DAYS if normalized == "weekly" else BIWEEKLY_DAYS
        return _dates_by_interval(start, end, anchor_date or start, interval)
    if normalized == "semimonthly":
        return [start.replace(day=SEMIMONTHLY_DAY), end]
    fallback_day = anchor_date.day if anchor_date else 1
    return [_monthly_date(start, end, day_rule, fallback_day)]


def parse_day_rule(day_rule: str | int | None) -> int | str | None:
    if day_rule is None:
        return None
    if isinstance(day_rule, int):
        return day_rule
    raw = day_rule.strip().lower()
    if raw == "last":
        return "last"
    if raw.startswith("day:"):
        raw = raw[4:].strip()
    try:
        return int(raw)
    except ValueError:
        return None


def _monthly_date(start: date, end: date, day_rule: str | int | None, fallback_day: int) -> date:
    parsed = parse_day_rule(day_rule)
    if parsed == "last":
        return end
    day = parsed if isinstance(parsed, int) else fallback_day
    clamped = min(max(day, 1), end.day)
    return start.replace(day=clamped)


def _dates_by_interval(start: date, end: date, anchor: date, interval_days: int) -> List[date]:
    current = _first_occurrence_on_or_after(anchor, start, interval_days)
    dates: List[date] = []
    while current <= end:
        dates.append(current)
        current += timedelta(days=interval_days)
    return dates


def _first_occurrence_on_or_after(
    anchor: date, minimum_date: date, interval_days: int
) -> date:
    if anchor >= minimum_date:
        return anchor
    days_between = (minimum_date - anchor).days
    intervals = (days_between + interval_days - 1) // interval_days
    return anchor + timedelta(days=interval_days * intervals)
