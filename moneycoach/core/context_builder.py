"""
MoneyCoach Assistant — User Context Builder.

Projects the ledger into the USER CONTEXT block embedded in the system
prompt. It is the only factual grounding the LLM receives, so every number
the coach may quote must come from here or from the user's own message.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from moneycoach.core.periods import month_start, rupees
from moneycoach.data.db import LedgerError
from moneycoach.data.models import EXPENSE, INCOME, Debt, Goal, Transaction, User

if TYPE_CHECKING:
    from moneycoach.data.db import Ledger

logger = logging.getLogger(__name__)

MONTH_TRANSACTION_LIMIT = 30
RECENT_TRANSACTION_LIMIT = 10

_HEADER = "--- USER CONTEXT (system-provided, factual) ---"
_FOOTER = "--- END USER CONTEXT ---"
ERROR_CONTEXT = "--- USER CONTEXT ---\nError loading context.\n--- END USER CONTEXT ---"


def category_breakdown(transactions: list[Transaction]) -> list[tuple[str, float]]:
    """Expense totals per category, largest first."""
    totals: dict[str, float] = {}
    for t in transactions:
        if t.type != EXPENSE:
            continue
        cat = t.category or "Uncategorized"
        totals[cat] = totals.get(cat, 0) + t.amount
    return sorted(totals.items(), key=lambda kv: kv[1], reverse=True)


def _debt_line(d: Debt) -> str:
    line = f"  - {d.lender_name}: {rupees(d.total_amount)}"
    if d.interest_rate is not None:
        line += f" @ {d.interest_rate:g}%"
    if d.emi_amount is not None:
        line += f", EMI {rupees(d.emi_amount)}"
    if d.classification != "unknown":
        line += f" [{d.classification}]"
    return line


def _goal_line(g: Goal) -> str:
    line = f"  - {g.goal_name}: Target {rupees(g.goal_amount)}"
    if g.goal_target_date:
        line += f" by {g.goal_target_date.strftime('%b %Y')}"
    line += f", Saved so far {rupees(g.saved_so_far)}"
    return line


def build_user_context(
    user: User,
    month_transactions: list[Transaction],
    debts: list[Debt],
    goals: list[Goal],
) -> str:
    """Render the context block. ``month_transactions`` must be newest first."""
    expenses = sum(t.amount for t in month_transactions if t.type == EXPENSE)
    income = sum(t.amount for t in month_transactions if t.type == INCOME)

    lines = [_HEADER]

    if user.name:
        lines.append(f"Name: {user.name}")
    lines.append(f"Preferred Language: {user.preferred_language}")

    if user.monthly_salary is not None:
        lines.append(f"Monthly Salary: {rupees(user.monthly_salary)}")
    else:
        lines.append("Monthly Salary: Not set")

    lines.append(f"Streak: {user.streak} day(s)")
    lines.append(f"Expenses This Month: {rupees(expenses)}")
    lines.append(f"Income Logged This Month: {rupees(income)}")

    breakdown = category_breakdown(month_transactions)
    if breakdown:
        lines.append("Category Breakdown This Month:")
        lines.extend(f"  - {cat}: {rupees(amt)}" for cat, amt in breakdown)

    recent = month_transactions[:RECENT_TRANSACTION_LIMIT]
    if recent:
        lines.append("Recent Transactions (latest first):")
        for t in recent:
            day = f"{t.date.day} {t.date.strftime('%b')}"
            lines.append(f"  - {day}: {t.item} {rupees(t.amount)} [{t.category}] ({t.type})")
    else:
        lines.append("Recent Transactions: None logged yet.")

    if debts:
        lines.append("Active Debts:")
        lines.extend(_debt_line(d) for d in debts)
    else:
        lines.append("Active Debts: None recorded.")

    if goals:
        lines.append("Active Goals:")
        lines.extend(_goal_line(g) for g in goals)
    else:
        lines.append("Active Goals: None set.")

    lines.append(_FOOTER)
    return "\n".join(lines)


def load_user_context(ledger: Ledger, user: User, today: date | None = None) -> str:
    """Read this month's ledger slice and render it; never raises."""
    start = month_start(today or date.today())
    try:
        transactions = ledger.transactions.list_between(
            user.whatsapp_id, start, limit=MONTH_TRANSACTION_LIMIT,
        )
        debts = ledger.debts.list_active(user.whatsapp_id)
        goals = ledger.goals.list_active(user.whatsapp_id)
    except LedgerError as exc:
        logger.error("Error building user context for %s: %s", user.whatsapp_id, exc)
        return ERROR_CONTEXT

    return build_user_context(user, transactions, debts, goals)
