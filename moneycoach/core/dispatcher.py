"""
MoneyCoach Assistant — Action Dispatcher.

Applies one parsed action to the ledger and shapes the reply:

    log_transaction  amount > 0        → new Transaction (+ impact block for expenses)
    update_salary    amount > 0        → User.monthly_salary
    log_debt         total_amount > 0  → new Debt (classification derived)
    log_goal         goal_amount > 0   → new Goal
    chat             —                 → nothing

A failed precondition or a ledger error skips the mutation but the model's
message is still returned. The reply is never empty.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import TYPE_CHECKING

from moneycoach.core.impact import build_transaction_impact, strip_expense_disclaimer
from moneycoach.core.parser import Action, LogDebt, LogGoal, LogTransaction, UpdateSalary
from moneycoach.data.db import LedgerError
from moneycoach.data.models import EXPENSE

if TYPE_CHECKING:
    from moneycoach.data.db import Ledger
    from moneycoach.data.models import User

logger = logging.getLogger(__name__)

RETRY_MESSAGE = (
    "I noted that, but my brain glitched on how to respond. "
    "Could you try saying that again in a slightly different way?"
)


def _positive(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and value > 0


class ActionDispatcher:
    """Executes parsed actions against the ledger for one user at a time."""

    def __init__(self, ledger: Ledger) -> None:
        self._ledger = ledger

    def dispatch(self, user: User, action: Action, today: date | None = None) -> str:
        """Apply ``action`` for ``user`` and return the text to send back."""
        message = action.message or ""

        try:
            if isinstance(action, LogTransaction):
                message = self._log_transaction(user, action, message, today)
            elif isinstance(action, UpdateSalary):
                self._update_salary(user, action)
            elif isinstance(action, LogDebt):
                self._log_debt(user, action)
            elif isinstance(action, LogGoal):
                self._log_goal(user, action)
        except LedgerError as exc:
            logger.error(
                "Action dispatch error for %s (%s): %s", user.whatsapp_id, action.action, exc,
            )

        if not message or not isinstance(message, str):
            message = RETRY_MESSAGE
        return message

    # ------------------------------------------------------------------
    # Per-action handlers
    # ------------------------------------------------------------------

    def _log_transaction(
        self, user: User, action: LogTransaction, message: str, today: date | None,
    ) -> str:
        if not _positive(action.amount):
            logger.warning("log_transaction missing valid amount: %r", action.model_dump())
            return message

        txn = self._ledger.transactions.add_transaction(
            user.whatsapp_id,
            item=action.item or "Unnamed",
            amount=action.amount,
            category=action.category or "Uncategorized",
            type=action.type or EXPENSE,
        )
        user.last_transaction_at = txn.date
        self._ledger.users.save_user(user)

        message = strip_expense_disclaimer(message, txn.type)
        if txn.type != EXPENSE:
            return message

        goal = self._ledger.goals.earliest_target_goal(user.whatsapp_id)
        impact = build_transaction_impact(user, txn, goal, today or datetime.now().date())
        if impact:
            message += ("\n\n" if message else "") + impact
        return message

    def _update_salary(self, user: User, action: UpdateSalary) -> None:
        if not _positive(action.amount):
            logger.warning("update_salary missing valid amount: %r", action.model_dump())
            return
        self._ledger.users.update_salary(user, action.amount)

    def _log_debt(self, user: User, action: LogDebt) -> None:
        if not _positive(action.total_amount):
            logger.warning("log_debt missing valid totalAmount: %r", action.model_dump())
            return
        self._ledger.debts.add_debt(
            user.whatsapp_id,
            lender_name=action.lender_name or "Unknown",
            total_amount=action.total_amount,
            interest_rate=action.interest_rate,
            emi_amount=action.emi_amount,
            tenure_months=action.tenure_months,
            due_date=action.due_date,
        )

    def _log_goal(self, user: User, action: LogGoal) -> None:
        if not _positive(action.goal_amount):
            logger.warning("log_goal missing valid goalAmount: %r", action.model_dump())
            return
        self._ledger.goals.add_goal(
            user.whatsapp_id,
            goal_name=action.goal_name or "My Goal",
            goal_amount=action.goal_amount,
            goal_target_date=action.goal_target_date,
        )
