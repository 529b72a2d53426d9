"""Tests for moneycoach.core.context_builder — USER CONTEXT block."""

from datetime import date, datetime
from unittest.mock import MagicMock

from moneycoach.core.context_builder import (
    ERROR_CONTEXT,
    build_user_context,
    category_breakdown,
    load_user_context,
)
from moneycoach.data.db import LedgerError
from moneycoach.data.models import Debt, Goal, Transaction, User


def _txn(item, amount, category, type="Expense", day=5):
    return Transaction(
        id=0, whatsapp_id="u", item=item, amount=amount,
        category=category, type=type, date=datetime(2026, 3, day, 10, 0),
    )


def test_category_breakdown_largest_first_and_expenses_only():
    txns = [
        _txn("Pizza", 790, "Food"),
        _txn("Rent", 15000, "Housing"),
        _txn("Chai", 30, "Food"),
        _txn("Salary", 60000, "Salary", type="Income"),
    ]
    assert category_breakdown(txns) == [("Housing", 15000), ("Food", 820)]


class TestBuildUserContext:
    def test_new_user_without_data(self):
        text = build_user_context(User(whatsapp_id="u"), [], [], [])
        lines = text.splitlines()
        assert lines[0] == "--- USER CONTEXT (system-provided, factual) ---"
        assert lines[-1] == "--- END USER CONTEXT ---"
        assert "Monthly Salary: Not set" in lines
        assert "Expenses This Month: ₹0" in lines
        assert "Recent Transactions: None logged yet." in lines
        assert "Active Debts: None recorded." in lines
        assert "Active Goals: None set." in lines
        assert not any(line.startswith("Name:") for line in lines)

    def test_full_context(self):
        user = User(whatsapp_id="u", name="Asha", monthly_salary=60000, streak=3)
        txns = [_txn("Pizza", 790, "Food", day=8), _txn("Rent", 15000, "Housing", day=1)]
        debts = [
            Debt(id=1, whatsapp_id="u", lender_name="HDFC Card", total_amount=80000,
                 interest_rate=36, emi_amount=5000, classification="toxic"),
        ]
        goals = [
            Goal(id=1, whatsapp_id="u", goal_name="Bike", goal_amount=120000,
                 goal_target_date=date(2027, 3, 1)),
        ]

        text = build_user_context(user, txns, debts, goals)

        assert "Name: Asha" in text
        assert "Monthly Salary: ₹60,000" in text
        assert "Streak: 3 day(s)" in text
        assert "Expenses This Month: ₹15,790" in text
        assert "  - Housing: ₹15,000\n  - Food: ₹790" in text
        assert "  - 8 Mar: Pizza ₹790 [Food] (Expense)" in text
        assert "  - HDFC Card: ₹80,000 @ 36%, EMI ₹5,000 [toxic]" in text
        assert "  - Bike: Target ₹1,20,000 by Mar 2027, Saved so far ₹0" in text


class TestLoadUserContext:
    def test_reads_only_current_month(self, ledger):
        user = ledger.users.find_or_create("u")
        ledger.transactions.add_transaction("u", "Old", 999, when=datetime(2026, 2, 20))
        ledger.transactions.add_transaction("u", "Pizza", 790, category="Food", when=datetime(2026, 3, 2))

        text = load_user_context(ledger, user, today=date(2026, 3, 10))

        assert "Pizza" in text
        assert "Old" not in text

    def test_ledger_error_gives_error_context(self):
        ledger = MagicMock()
        ledger.transactions.list_between.side_effect = LedgerError("disk I/O error")
        assert load_user_context(ledger, User(whatsapp_id="u")) == ERROR_CONTEXT
