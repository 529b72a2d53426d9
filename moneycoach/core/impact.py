"""
MoneyCoach Assistant — Transaction Impact.

Turns a freshly logged expense into concrete feedback: hours of work it
cost, share of the monthly salary, a strict-mode nudge for big
non-essential spends, and how many days earlier the nearest goal could have
been reached. Pure functions, no ledger access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from moneycoach.core.periods import format_inr, months_between
from moneycoach.data.models import EXPENSE, Goal, Transaction, User

logger = logging.getLogger(__name__)

MIN_HOURS_TO_REPORT = 0.3
SALARY_SHARE_PCT = 5
STRICT_NUDGE_PCT = 10
DAYS_PER_MONTH = 30

DISCRETIONARY_KEYWORDS = (
    "food",
    "food delivery",
    "restaurant",
    "swiggy",
    "zomato",
    "shopping",
    "online shopping",
    "entertainment",
    "travel",
    "movie",
    "uber",
    "ola",
    "cab",
    "subscription",
)

_DISCLAIMER_NEEDLE = "note: i am not a sebi/rbi registered advisor"

STRICT_NUDGE = "Savings just took a small L here 😅 Next time, ping me before such a big swipe."


@dataclass
class ImpactFigures:
    """Raw numbers behind the impact sentences (None when salary is unknown)."""

    hourly_rate: float | None = None
    hours: float | None = None
    salary_pct: float | None = None


def is_discretionary_category(category: str | None) -> bool:
    cat = (category or "").lower()
    return any(keyword in cat for keyword in DISCRETIONARY_KEYWORDS)


def strip_expense_disclaimer(message: str, txn_type: str) -> str:
    """Drop the advisory disclaimer (and anything after it) from expense replies."""
    if not message or txn_type != EXPENSE:
        return message
    idx = message.lower().find(_DISCLAIMER_NEEDLE)
    if idx == -1:
        return message
    return message[:idx].strip()


def _one_decimal(value: float) -> str:
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


def compute_figures(user: User, amount: float) -> ImpactFigures:
    salary = user.monthly_salary or 0
    if salary <= 0:
        return ImpactFigures()

    work_days = user.work_days_per_month or 22
    work_hours = user.work_hours_per_day or 8
    hourly_rate = salary / (work_days * work_hours)
    return ImpactFigures(
        hourly_rate=hourly_rate,
        hours=amount / hourly_rate if hourly_rate > 0 else None,
        salary_pct=amount / salary * 100,
    )


def goal_delay_days(goal: Goal, amount: float, today: date) -> int | None:
    """Days of goal saving this amount represents, or None below one day."""
    if goal.goal_target_date is None:
        return None

    months_left = max(1, months_between(today, goal.goal_target_date))
    daily_need = goal.goal_amount / months_left / DAYS_PER_MONTH
    if daily_need <= 0:
        return None

    days = amount / daily_need
    if days < 1:
        return None
    return round(days)


def build_transaction_impact(
    user: User,
    txn: Transaction,
    goal: Goal | None = None,
    today: date | None = None,
) -> str:
    """Impact block appended to an expense confirmation ('' when nothing applies).

    ``goal`` should be the user's active goal with the earliest target date.
    """
    if txn.type != EXPENSE:
        return ""

    lines: list[str] = []
    figures = compute_figures(user, txn.amount)

    if figures.hours is not None and figures.hours >= MIN_HOURS_TO_REPORT:
        lines.append(f"This spend equals about {_one_decimal(figures.hours)} hours of your work.")

    if figures.salary_pct is not None and figures.salary_pct >= SALARY_SHARE_PCT:
        lines.append(
            f"That's about {figures.salary_pct:.1f}% of your monthly salary in one shot."
        )

    discretionary = is_discretionary_category(txn.category)

    if (
        user.strict_mode
        and figures.salary_pct is not None
        and figures.salary_pct >= STRICT_NUDGE_PCT
        and discretionary
    ):
        lines.append(STRICT_NUDGE)

    if goal is not None and discretionary:
        days = goal_delay_days(goal, txn.amount, today or date.today())
        if days is not None:
            lines.append(
                f"If you had saved this ₹{format_inr(txn.amount)} for your goal "
                f"\"{goal.goal_name}\", you could reach it roughly {days} day(s) "
                f"earlier instead of spending it."
            )

    return "\n".join(lines)
