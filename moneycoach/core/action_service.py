"""
MoneyCoach Assistant — UI-Agnostic Action Service.

Service layer that runs one inbound text through the pipeline:
load user → route intent → local command or (context → LLM → dispatch)
→ save user → return the reply.

The transport adapter (WhatsApp webhook) calls this service and sends the
returned text itself. Ledger failures propagate to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from moneycoach.core.context_builder import load_user_context
from moneycoach.core.dispatcher import ActionDispatcher
from moneycoach.core.health import build_health_summary_text, compute_monthly_health
from moneycoach.core.parser import DISCLAIMER, infer_action
from moneycoach.core.periods import month_start, next_month_start, previous_month_start
from moneycoach.core.planner import (
    USAGE_HINT,
    build_savings_impact_text,
    extract_amount,
    summarize_month,
)
from moneycoach.core.router import Intent, classify_intent
from moneycoach.data.models import EXPENSE, HISTORY_LIMIT

if TYPE_CHECKING:
    from moneycoach.data.db import Ledger
    from moneycoach.data.models import User

logger = logging.getLogger(__name__)


STRICT_ON_MESSAGE = (
    "Strict mode ON. Now I'll be a bit more honest and direct on big non-essential "
    "spends, almost like a money coach and parent combo."
)

STRICT_OFF_MESSAGE = "Strict mode OFF. I'll keep things softer and more neutral from now on."

WELCOME_MESSAGE = (
    "Hi 👋\n"
    "I'm MoneyCoach, your personal money coach on WhatsApp.\n\n"
    "I help you see where your money goes, cut leaks, and build simple habits "
    "to save, invest and grow wealth, without spreadsheets or jargon.\n\n"
    "Things I can help with:\n"
    "• Tracking daily expenses (just type \"Spent 250 on Zomato\")\n"
    "• Finding money leaks\n"
    "• Monthly savings & budget planning\n"
    "• Emergency fund & goal planning\n"
    "• Debt and EMI clean-up\n"
    "• Basic tax & ITR awareness\n\n"
    "Handy commands: \"health\" for your monthly score, \"impact 2000\" to see what "
    "saving extra does, \"strict on\" for tougher feedback.\n\n"
    "Reply with one line about your situation, for example:\n"
    "• \"I don't know where my salary goes\"\n"
    "• \"I overspend on food & clothes\"\n"
    "• \"I need to save for my marriage\"\n\n"
    + DISCLAIMER
)


@dataclass
class ServiceResponse:
    intent: Intent
    message: str


class ActionService:
    """Orchestrates routing, inference and dispatch for one message.

    Returns a ServiceResponse — never sends messages directly.
    """

    def __init__(self, ledger: Ledger, history_limit: int = HISTORY_LIMIT) -> None:
        self._ledger = ledger
        self._dispatcher = ActionDispatcher(ledger)
        self._history_limit = history_limit

    async def process_text(
        self,
        whatsapp_id: str,
        text: str,
        profile_name: str | None = None,
        today: date | None = None,
    ) -> ServiceResponse:
        """Handle one text (typed, transcribed or read from a bill)."""
        started = time.monotonic()
        today = today or date.today()

        user = self._ledger.users.find_or_create(whatsapp_id, profile_name)
        user.update_streak(today)

        intent = classify_intent(text)

        if intent is Intent.STRICT_ON:
            user.strict_mode = True
            message = STRICT_ON_MESSAGE
        elif intent is Intent.STRICT_OFF:
            user.strict_mode = False
            message = STRICT_OFF_MESSAGE
        elif intent is Intent.GREETING:
            user.clear_conversation()
            message = WELCOME_MESSAGE
        elif intent is Intent.FORECAST:
            message = self._forecast(user, text, today)
        elif intent is Intent.HEALTH:
            message = self._health(user, today)
        else:
            message = await self._coach(user, text, today)

        self._ledger.users.save_user(user)

        logger.info(
            "Handled %s for %s in %.0f ms",
            intent.value, whatsapp_id, (time.monotonic() - started) * 1000,
        )
        return ServiceResponse(intent=intent, message=message)

    # ------------------------------------------------------------------
    # Local commands
    # ------------------------------------------------------------------

    def _forecast(self, user: User, text: str, today: date) -> str:
        if extract_amount(text) is None:
            return USAGE_HINT

        this_month = month_start(today)
        last_month = previous_month_start(today)

        prior = self._ledger.transactions.list_between(user.whatsapp_id, last_month, this_month)
        current = self._ledger.transactions.list_between(
            user.whatsapp_id, this_month, next_month_start(today),
        )
        current_expenses = sum(t.amount for t in current if t.type == EXPENSE)

        return build_savings_impact_text(
            text,
            summarize_month(prior, last_month),
            current_expenses,
            user.monthly_salary,
        )

    def _health(self, user: User, today: date) -> str:
        transactions = self._ledger.transactions.list_between(
            user.whatsapp_id, month_start(today), next_month_start(today),
        )
        debts = self._ledger.debts.list_active(user.whatsapp_id)
        report = compute_monthly_health(transactions, debts, user.monthly_salary, today)
        logger.info("Health score for %s: %d", user.whatsapp_id, report.score)
        return build_health_summary_text(report)

    # ------------------------------------------------------------------
    # LLM flow
    # ------------------------------------------------------------------

    async def _coach(self, user: User, text: str, today: date) -> str:
        user.add_to_conversation("user", text, limit=self._history_limit)

        context = load_user_context(self._ledger, user, today)
        action = await infer_action(user, text, context)
        logger.info("LLM action for %s: %s", user.whatsapp_id, action.action)

        reply = self._dispatcher.dispatch(user, action, today)
        user.add_to_conversation("assistant", reply, limit=self._history_limit)
        return reply
