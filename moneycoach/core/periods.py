"""Calendar-month boundaries and money formatting shared by the engines."""

from __future__ import annotations

from datetime import date, datetime


def month_start(day: date) -> datetime:
    """Midnight on the first day of ``day``'s month."""
    return datetime(day.year, day.month, 1)


def next_month_start(day: date) -> datetime:
    if day.month == 12:
        return datetime(day.year + 1, 1, 1)
    return datetime(day.year, day.month + 1, 1)


def previous_month_start(day: date) -> datetime:
    if day.month == 1:
        return datetime(day.year - 1, 12, 1)
    return datetime(day.year, day.month - 1, 1)


def months_between(start: date, end: date) -> int:
    """Calendar-month difference, ignoring the day of month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def format_inr(amount: float) -> str:
    """Whole rupees with Indian digit grouping, e.g. 150000 -> '1,50,000'."""
    value = int(round(amount))
    sign = "-" if value < 0 else ""
    digits = str(abs(value))

    if len(digits) <= 3:
        return sign + digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def rupees(amount: float) -> str:
    return f"₹{format_inr(amount)}"
