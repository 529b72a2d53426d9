"""Tests for moneycoach.core.impact — per-expense feedback lines."""

from datetime import date, datetime

import pytest

from moneycoach.core.impact import (
    STRICT_NUDGE,
    build_transaction_impact,
    compute_figures,
    goal_delay_days,
    is_discretionary_category,
    strip_expense_disclaimer,
)
from moneycoach.core.parser import DISCLAIMER
from moneycoach.data.models import Goal, Transaction, User

TODAY = date(2026, 3, 10)


def _txn(amount, category="Food", type="Expense"):
    return Transaction(
        id=1, whatsapp_id="u", item="Thing", amount=amount,
        category=category, type=type, date=datetime(2026, 3, 10, 12, 0),
    )


def _goal(amount=120000, target=date(2027, 3, 1), name="Bike"):
    return Goal(id=1, whatsapp_id="u", goal_name=name, goal_amount=amount, goal_target_date=target)


class TestComputeFigures:
    def test_hourly_rate_from_salary(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        figures = compute_figures(user, 1000)
        assert figures.hourly_rate == pytest.approx(340.909, abs=0.001)
        assert figures.hours == pytest.approx(2.933, abs=0.001)
        assert figures.salary_pct == pytest.approx(1.667, abs=0.001)

    def test_no_salary_yields_nothing(self):
        figures = compute_figures(User(whatsapp_id="u"), 1000)
        assert figures.hours is None
        assert figures.salary_pct is None


class TestBuildTransactionImpact:
    def test_small_spend_hours_only(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        text = build_transaction_impact(user, _txn(1000, "Groceries"), today=TODAY)
        assert text == "This spend equals about 2.9 hours of your work."

    def test_percentage_line_at_five_percent(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        text = build_transaction_impact(user, _txn(3000, "Groceries"), today=TODAY)
        assert "That's about 5.0% of your monthly salary in one shot." in text

    def test_tiny_spend_has_no_lines(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        assert build_transaction_impact(user, _txn(50, "Groceries"), today=TODAY) == ""

    def test_no_salary_no_goal_is_empty(self):
        assert build_transaction_impact(User(whatsapp_id="u"), _txn(5000), today=TODAY) == ""

    def test_income_is_ignored(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        assert build_transaction_impact(user, _txn(50000, type="Income"), _goal(), TODAY) == ""

    def test_strict_nudge_for_big_discretionary_spend(self):
        user = User(whatsapp_id="u", monthly_salary=60000, strict_mode=True)
        text = build_transaction_impact(user, _txn(6000, "Online Shopping"), today=TODAY)
        assert "10.0% of your monthly salary" in text
        assert text.endswith(STRICT_NUDGE)

    def test_no_nudge_without_strict_mode(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        text = build_transaction_impact(user, _txn(6000, "Online Shopping"), today=TODAY)
        assert STRICT_NUDGE not in text

    def test_no_nudge_for_essential_category(self):
        user = User(whatsapp_id="u", monthly_salary=60000, strict_mode=True)
        text = build_transaction_impact(user, _txn(6000, "Rent"), today=TODAY)
        assert STRICT_NUDGE not in text

    def test_goal_line_for_discretionary_spend(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        text = build_transaction_impact(user, _txn(1000, "Food Delivery"), _goal(), TODAY)
        assert text.splitlines()[-1] == (
            'If you had saved this ₹1,000 for your goal "Bike", you could reach it '
            "roughly 3 day(s) earlier instead of spending it."
        )

    def test_goal_line_works_without_salary(self):
        text = build_transaction_impact(User(whatsapp_id="u"), _txn(1000, "Zomato"), _goal(), TODAY)
        assert text.startswith("If you had saved this ₹1,000")

    def test_no_goal_line_for_essential_spend(self):
        user = User(whatsapp_id="u", monthly_salary=60000)
        text = build_transaction_impact(user, _txn(1000, "Rent"), _goal(), TODAY)
        assert "your goal" not in text


class TestGoalDelayDays:
    def test_days_rounded(self):
        assert goal_delay_days(_goal(), 1000, TODAY) == 3

    def test_below_one_day_is_none(self):
        assert goal_delay_days(_goal(), 100, TODAY) is None

    def test_past_target_uses_one_month(self):
        goal = _goal(amount=30000, target=date(2025, 1, 1))
        assert goal_delay_days(goal, 2000, TODAY) == 2

    def test_no_target_date(self):
        assert goal_delay_days(_goal(target=None), 1000, TODAY) is None


class TestHelpers:
    @pytest.mark.parametrize("category", ["Food Delivery", "swiggy order", "Movie", "Cab", "Netflix subscription"])
    def test_discretionary(self, category):
        assert is_discretionary_category(category) is True

    @pytest.mark.parametrize("category", ["Rent", "Groceries", "Medical", None])
    def test_not_discretionary(self, category):
        assert is_discretionary_category(category) is False

    def test_disclaimer_stripped_from_expense_reply(self):
        message = f"Logged ₹790 on Pizza.\n\n{DISCLAIMER}"
        assert strip_expense_disclaimer(message, "Expense") == "Logged ₹790 on Pizza."

    def test_disclaimer_kept_for_income(self):
        message = f"Nice raise!\n{DISCLAIMER}"
        assert strip_expense_disclaimer(message, "Income") == message
