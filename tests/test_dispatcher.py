"""Tests for moneycoach.core.dispatcher — applying actions to the ledger."""

from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from moneycoach.core.dispatcher import RETRY_MESSAGE, ActionDispatcher
from moneycoach.core.parser import (
    DISCLAIMER,
    ChatReply,
    LogDebt,
    LogGoal,
    LogTransaction,
    UpdateSalary,
    parse_action_response,
)
from moneycoach.data.db import LedgerError

TODAY = date(2026, 3, 10)


@pytest.fixture
def dispatcher(ledger):
    return ActionDispatcher(ledger)


@pytest.fixture
def stored_user(ledger):
    user = ledger.users.find_or_create("919800000001", "Asha")
    ledger.users.update_salary(user, 60000)
    return user


class TestLogTransaction:
    def test_logs_expense_and_appends_impact(self, dispatcher, ledger, stored_user):
        action = LogTransaction(
            item="Groceries", amount=1000, category="Groceries", type="Expense",
            message="Logged ₹1,000 on groceries.",
        )
        reply = dispatcher.dispatch(stored_user, action, TODAY)

        assert reply == (
            "Logged ₹1,000 on groceries.\n\n"
            "This spend equals about 2.9 hours of your work."
        )
        txns = ledger.transactions.list_between(stored_user.whatsapp_id, datetime(2000, 1, 1))
        assert len(txns) == 1
        assert txns[0].amount == 1000
        assert ledger.users.get_user(stored_user.whatsapp_id).last_transaction_at == txns[0].date

    def test_defaults_for_missing_fields(self, dispatcher, ledger, stored_user):
        dispatcher.dispatch(stored_user, LogTransaction(amount=50, message="ok"), TODAY)
        txn = ledger.transactions.list_between(stored_user.whatsapp_id, datetime(2000, 1, 1))[0]
        assert txn.item == "Unnamed"
        assert txn.category == "Uncategorized"
        assert txn.type == "Expense"

    def test_expense_reply_drops_disclaimer(self, dispatcher, stored_user):
        action = LogTransaction(item="Chai", amount=20, category="Food", message=f"Logged chai.\n{DISCLAIMER}")
        assert dispatcher.dispatch(stored_user, action, TODAY) == "Logged chai."

    def test_income_reply_has_no_impact(self, dispatcher, stored_user):
        action = LogTransaction(item="Bonus", amount=20000, type="Income", message="Nice bonus!")
        assert dispatcher.dispatch(stored_user, action, TODAY) == "Nice bonus!"

    def test_goal_delay_line_uses_earliest_goal(self, dispatcher, ledger, stored_user):
        ledger.goals.add_goal(stored_user.whatsapp_id, "Later", 900000, date(2030, 1, 1))
        ledger.goals.add_goal(stored_user.whatsapp_id, "Bike", 120000, date(2027, 3, 1))
        action = LogTransaction(item="Pizza", amount=1000, category="Food Delivery", message="Logged.")

        reply = dispatcher.dispatch(stored_user, action, TODAY)

        assert 'your goal "Bike"' in reply
        assert "roughly 3 day(s) earlier" in reply

    @pytest.mark.parametrize("amount", [None, 0, -5])
    def test_invalid_amount_skips_mutation(self, dispatcher, ledger, stored_user, amount):
        action = LogTransaction(item="Pizza", amount=amount, message="Hmm, how much was it?")
        reply = dispatcher.dispatch(stored_user, action, TODAY)
        assert reply == "Hmm, how much was it?"
        assert ledger.transactions.count() == 0

    def test_non_finite_amount_skips_mutation(self, dispatcher, ledger, stored_user):
        action = LogTransaction.model_construct(
            action="log_transaction", item="Pizza", amount=float("inf"),
            category=None, type=None, message="How much was it?",
        )
        reply = dispatcher.dispatch(stored_user, action, TODAY)
        assert reply == "How much was it?"
        assert ledger.transactions.count() == 0

    def test_overflowing_llm_amount_is_not_stored(self, dispatcher, ledger, stored_user):
        action = parse_action_response(
            '{"action": "log_transaction", "item": "Pizza", "amount": "1e999", "message": "Noted."}'
        )
        assert dispatcher.dispatch(stored_user, action, TODAY) == "Noted."
        assert ledger.transactions.count() == 0


class TestOtherActions:
    def test_update_salary(self, dispatcher, ledger, stored_user):
        reply = dispatcher.dispatch(stored_user, UpdateSalary(amount=75000, message="Updated!"), TODAY)
        assert reply == "Updated!"
        assert stored_user.monthly_salary == 75000
        assert ledger.users.get_user(stored_user.whatsapp_id).monthly_salary == 75000

    def test_update_salary_without_amount(self, dispatcher, ledger, stored_user):
        dispatcher.dispatch(stored_user, UpdateSalary(message="What is your salary?"), TODAY)
        assert ledger.users.get_user(stored_user.whatsapp_id).monthly_salary == 60000

    def test_log_debt_classifies(self, dispatcher, ledger, stored_user):
        action = LogDebt(lenderName="HDFC Card", totalAmount=80000, interestRate=22, message="Noted.")
        assert dispatcher.dispatch(stored_user, action, TODAY) == "Noted."
        debt = ledger.debts.list_active(stored_user.whatsapp_id)[0]
        assert debt.classification == "toxic"
        assert debt.is_active is True

    def test_log_debt_default_lender(self, dispatcher, ledger, stored_user):
        dispatcher.dispatch(stored_user, LogDebt(totalAmount=5000, message="ok"), TODAY)
        assert ledger.debts.list_active(stored_user.whatsapp_id)[0].lender_name == "Unknown"

    def test_log_debt_without_amount(self, dispatcher, ledger, stored_user):
        dispatcher.dispatch(stored_user, LogDebt(lenderName="SBI", message="How much?"), TODAY)
        assert ledger.debts.list_active(stored_user.whatsapp_id) == []

    def test_log_goal(self, dispatcher, ledger, stored_user):
        dispatcher.dispatch(stored_user, LogGoal(goalAmount=500000, message="Goal set!"), TODAY)
        goal = ledger.goals.list_active(stored_user.whatsapp_id)[0]
        assert goal.goal_name == "My Goal"
        assert goal.saved_so_far == 0

    def test_chat_changes_nothing(self, dispatcher, ledger, stored_user):
        assert dispatcher.dispatch(stored_user, ChatReply(message="Hello!"), TODAY) == "Hello!"
        assert ledger.transactions.count() == 0

    def test_empty_message_gets_retry_text(self, dispatcher, stored_user):
        assert dispatcher.dispatch(stored_user, ChatReply(message=""), TODAY) == RETRY_MESSAGE


def test_ledger_error_still_returns_message(stored_user):
    ledger = MagicMock()
    ledger.transactions.add_transaction.side_effect = LedgerError("database is locked")
    dispatcher = ActionDispatcher(ledger)

    action = LogTransaction(item="Pizza", amount=790, message="Logged ₹790 on Pizza.")
    assert dispatcher.dispatch(stored_user, action, TODAY) == "Logged ₹790 on Pizza."
