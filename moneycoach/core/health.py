"""
MoneyCoach Assistant — Monthly Money Health Score.

A 0-100 score for the current month built from three signals: saving rate,
EMI burden and emergency readiness. Deterministic and side-effect free; the
caller loads this month's transactions and active debts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from moneycoach.core.periods import format_inr
from moneycoach.data.models import EXPENSE, INCOME, Debt, Transaction

BASE_SCORE = 40
EMERGENCY_MONTHS = 3


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


@dataclass
class HealthReport:
    month_label: str
    income: float
    expenses: float
    savings: float
    saving_rate: float
    monthly_emi: float
    emi_rate: float
    emergency_coverage: float
    score: int
    suggestions: list[str] = field(default_factory=list)


def saving_points(saving_rate: float) -> int:
    if saving_rate >= 0.3:
        return 30
    if saving_rate >= 0.2:
        return 25
    if saving_rate >= 0.1:
        return 15
    if saving_rate >= 0.05:
        return 10
    return 0


def emi_points(emi_rate: float) -> int:
    if emi_rate <= 0.1:
        return 10
    if emi_rate <= 0.2:
        return 7
    if emi_rate <= 0.3:
        return 4
    return 0


def emergency_points(coverage: float) -> int:
    if coverage >= 1:
        return 10
    if coverage >= 0.5:
        return 5
    return 0


def _suggestions(saving_rate: float, emi_rate: float, coverage: float) -> list[str]:
    tips: list[str] = []

    if saving_rate < 0.1:
        tips.append(
            "Your saving rate is quite low. Target saving at least 10-20% of your income. "
            "We can start by finding one leak to cut this month."
        )
    elif saving_rate < 0.2:
        tips.append(
            "You are saving something, which is good. Pushing this towards 20% of income "
            "will give you more security."
        )
    else:
        tips.append(
            "Your saving rate looks healthy. The next focus can be building or topping up "
            "your emergency fund."
        )

    if emi_rate > 0.3:
        tips.append(
            "EMI/loan burden is on the heavier side. Try not to take new loans and "
            "prioritise clearing the highest-interest ones."
        )
    elif emi_rate > 0.2:
        tips.append(
            "EMI burden is moderate. Keep an eye that it does not cross ~30% of your income."
        )

    if coverage < 0.5:
        tips.append(
            "Emergency readiness is weak. Aim to build at least 3 months of essential "
            "expenses as a buffer."
        )

    return tips


def compute_monthly_health(
    transactions: list[Transaction],
    debts: list[Debt],
    monthly_salary: float | None = None,
    month: date | None = None,
) -> HealthReport:
    """Score one month of activity.

    ``transactions`` should cover the month being scored; ``debts`` the
    user's active debts.
    """
    month = month or date.today()

    income = sum(t.amount for t in transactions if t.type == INCOME)
    expenses = sum(t.amount for t in transactions if t.type == EXPENSE)
    savings = max(income - expenses, 0)

    saving_rate = clamp(savings / income, 0, 1) if income > 0 else 0.0

    monthly_emi = sum(d.emi_amount or 0 for d in debts if d.is_active)
    emi_rate = clamp(monthly_emi / income, 0, 1) if income > 0 else 0.0

    monthly_need = max(expenses, monthly_salary or 0, 0)
    target_emergency = monthly_need * EMERGENCY_MONTHS
    coverage = savings / target_emergency if target_emergency > 0 else 0.0

    score = BASE_SCORE + saving_points(saving_rate) + emi_points(emi_rate) + emergency_points(coverage)
    score = int(clamp(round(score), 0, 100))

    return HealthReport(
        month_label=month.strftime("%B %Y"),
        income=income,
        expenses=expenses,
        savings=savings,
        saving_rate=saving_rate,
        monthly_emi=monthly_emi,
        emi_rate=emi_rate,
        emergency_coverage=coverage,
        score=score,
        suggestions=_suggestions(saving_rate, emi_rate, coverage),
    )


def build_health_summary_text(report: HealthReport) -> str:
    lines = [
        f"Financial health for {report.month_label}:",
        "",
        f"• Income: ₹{format_inr(report.income)}",
        f"• Expenses: ₹{format_inr(report.expenses)}",
        f"• Savings: ₹{format_inr(report.savings)} ({report.saving_rate * 100:.1f}% of income)",
        f"• Total EMIs (per month): ₹{format_inr(report.monthly_emi)} "
        f"({report.emi_rate * 100:.1f}% of income)",
        f"• Emergency coverage (this month vs 3 months target): "
        f"{min(report.emergency_coverage, 1) * 100:.1f}%",
        "",
        f"Your Money Health Score: {report.score}/100",
        "",
    ]

    if report.suggestions:
        lines.append("Next steps:")
        lines.extend(f"• {tip}" for tip in report.suggestions)

    lines.append("")
    lines.append(
        "This score is a rough guide, not a judgment. "
        "Use it to track your direction month by month."
    )
    return "\n".join(lines)
