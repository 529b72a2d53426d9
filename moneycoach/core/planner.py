"""
MoneyCoach Assistant — Savings Forecast.

Answers "impact 2000" / "plan save 500 per week": a linear 6- and 12-month
projection of last month's savings plus the extra amount, expressed in
months of basic expenses. No compounding.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date

from moneycoach.core.periods import format_inr
from moneycoach.data.models import EXPENSE, INCOME, Transaction

WEEKS_PER_MONTH = 4
HORIZONS = (6, 12)

_AMOUNT_RE = re.compile(r"(\d[\d,.]*)")

USAGE_HINT = (
    "To see impact, please add an amount. Example:\n"
    "• impact 2000  (extra ₹2000 per month)\n"
    "• plan save 500 per week"
)

_CAVEAT = (
    "This is a rough forecast, not a guarantee. Real results depend on your actual "
    "income, spending and whether you invest this money or keep it in savings."
)


@dataclass
class MonthSummary:
    month_label: str
    income: float
    expenses: float
    savings: float


@dataclass
class Forecast:
    extra_per_month: int
    totals: dict[int, float]      # horizon in months -> projected total
    coverage: dict[int, float]    # horizon in months -> months of expenses


def extract_amount(text: str | None) -> int | None:
    """First number in ``text`` (commas allowed), rounded; None if absent, not positive or not finite."""
    match = _AMOUNT_RE.search(text or "")
    if not match:
        return None
    try:
        amount = float(match.group(1).replace(",", "").rstrip("."))
    except ValueError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return int(round(amount))


def is_per_week(text: str | None) -> bool:
    t = (text or "").lower()
    return "per week" in t or "/week" in t or "weekly" in t


def summarize_month(transactions: list[Transaction], month: date) -> MonthSummary:
    income = sum(t.amount for t in transactions if t.type == INCOME)
    expenses = sum(t.amount for t in transactions if t.type == EXPENSE)
    return MonthSummary(
        month_label=month.strftime("%b %Y"),
        income=income,
        expenses=expenses,
        savings=max(income - expenses, 0),
    )


def project_savings(
    extra_per_month: int,
    prior_monthly_savings: float,
    baseline_monthly_expenses: float,
) -> Forecast:
    one_month_need = baseline_monthly_expenses or 1
    totals = {
        n: prior_monthly_savings * n + extra_per_month * n for n in HORIZONS
    }
    return Forecast(
        extra_per_month=extra_per_month,
        totals=totals,
        coverage={n: total / one_month_need for n, total in totals.items()},
    )


def build_savings_impact_text(
    text: str,
    prior_month: MonthSummary,
    current_month_expenses: float,
    monthly_salary: float | None = None,
) -> str:
    """Forecast reply for a savings-impact command.

    The baseline for "months of expenses" is this month's spending, or the
    salary when nothing has been spent yet.
    """
    extra = extract_amount(text)
    if not extra:
        return USAGE_HINT

    extra_per_month = extra * WEEKS_PER_MONTH if is_per_week(text) else extra
    baseline = current_month_expenses if current_month_expenses > 0 else (monthly_salary or 0)
    forecast = project_savings(extra_per_month, prior_month.savings, baseline)

    lines = [f"If you consistently save an extra ₹{format_inr(extra_per_month)} per month:", ""]
    for months in HORIZONS:
        lines.append(
            f"• In {months} months you could have about ₹{format_inr(forecast.totals[months])} "
            f"saved (≈ {forecast.coverage[months]:.1f} months of basic expenses)."
        )
    lines.append("")
    lines.append(_CAVEAT)
    return "\n".join(lines)
