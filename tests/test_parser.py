"""Tests for moneycoach.core.parser — LLM reply to typed Action."""

import json

import pytest
from datetime import date
from unittest.mock import AsyncMock, patch

from moneycoach.core.parser import (
    CONFUSED_MESSAGE,
    DISCLAIMER,
    HICCUP_MESSAGE,
    UNAVAILABLE_MESSAGE,
    ChatReply,
    LogDebt,
    LogGoal,
    LogTransaction,
    UpdateSalary,
    _clean_llm_response,
    build_messages,
    build_system_prompt,
    infer_action,
    parse_action_response,
)
from moneycoach.data.models import ConversationMessage, User


# ---------------------------------------------------------------------------
# Unit tests for _clean_llm_response
# ---------------------------------------------------------------------------


class TestCleanLlmResponse:
    def test_strips_json_code_block(self):
        raw = '```json\n{"action": "chat"}\n```'
        assert _clean_llm_response(raw) == '{"action": "chat"}'

    def test_strips_plain_code_block(self):
        assert _clean_llm_response('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_whitespace(self):
        assert _clean_llm_response("  hello  ") == "hello"


# ---------------------------------------------------------------------------
# parse_action_response
# ---------------------------------------------------------------------------


class TestParseActionResponse:
    def test_log_transaction(self):
        raw = json.dumps({
            "action": "log_transaction", "item": "Pizza", "amount": 790,
            "category": "Food Delivery", "type": "Expense", "message": "Logged ₹790 on Pizza.",
        })
        action = parse_action_response(raw)
        assert isinstance(action, LogTransaction)
        assert action.item == "Pizza"
        assert action.amount == 790
        assert action.type == "Expense"
        assert action.message == "Logged ₹790 on Pizza."

    def test_amount_as_formatted_string(self):
        raw = '{"action": "log_transaction", "item": "Rent", "amount": "₹1,200", "message": "ok"}'
        assert parse_action_response(raw).amount == 1200

    def test_garbage_amount_becomes_none(self):
        raw = '{"action": "update_salary", "amount": "a lot", "message": "ok"}'
        action = parse_action_response(raw)
        assert isinstance(action, UpdateSalary)
        assert action.amount is None

    @pytest.mark.parametrize("amount", ['"1e999"', "Infinity", "-Infinity", "NaN", "9" * 400, '"' + "9" * 400 + '"'])
    def test_non_finite_amount_becomes_none(self, amount):
        raw = '{"action": "log_transaction", "item": "Pizza", "amount": ' + amount + ', "message": "ok"}'
        action = parse_action_response(raw)
        assert isinstance(action, LogTransaction)
        assert action.amount is None

    def test_type_is_normalized(self):
        raw = '{"action": "log_transaction", "amount": 5, "type": "income", "message": "ok"}'
        assert parse_action_response(raw).type == "Income"

    def test_unknown_type_becomes_none(self):
        raw = '{"action": "log_transaction", "amount": 5, "type": "transfer", "message": "ok"}'
        assert parse_action_response(raw).type is None

    def test_log_debt_camel_case_fields(self):
        raw = json.dumps({
            "action": "log_debt", "lenderName": "HDFC Card", "totalAmount": 80000,
            "interestRate": 36, "emiAmount": 5000, "tenureMonths": 18,
            "dueDate": "2026-03-05", "message": "Noted your card debt.",
        })
        action = parse_action_response(raw)
        assert isinstance(action, LogDebt)
        assert action.lender_name == "HDFC Card"
        assert action.total_amount == 80000
        assert action.interest_rate == 36
        assert action.tenure_months == 18
        assert action.due_date == date(2026, 3, 5)

    def test_log_goal_bad_date_becomes_none(self):
        raw = json.dumps({
            "action": "log_goal", "goalName": "Bike", "goalAmount": 120000,
            "goalTargetDate": "next year", "message": "Goal set!",
        })
        action = parse_action_response(raw)
        assert isinstance(action, LogGoal)
        assert action.goal_amount == 120000
        assert action.goal_target_date is None

    def test_fenced_json(self):
        raw = '```json\n{"action": "chat", "message": "Hey!"}\n```'
        action = parse_action_response(raw)
        assert isinstance(action, ChatReply)
        assert action.message == "Hey!"

    def test_json_embedded_in_prose(self):
        raw = 'Sure! Here you go: {"action": "chat", "message": "Hello"} Hope that helps.'
        assert parse_action_response(raw).message == "Hello"

    def test_non_json_becomes_confused_chat(self):
        action = parse_action_response("I am not JSON at all")
        assert isinstance(action, ChatReply)
        assert action.message == CONFUSED_MESSAGE

    def test_none_becomes_confused_chat(self):
        assert parse_action_response(None).message == CONFUSED_MESSAGE

    def test_missing_message_becomes_hiccup_chat(self):
        raw = '{"action": "log_transaction", "item": "Pizza", "amount": 790}'
        action = parse_action_response(raw)
        assert isinstance(action, ChatReply)
        assert action.message == HICCUP_MESSAGE

    def test_unknown_action_becomes_chat_with_message(self):
        raw = '{"action": "buy_stocks", "message": "I cannot do that."}'
        action = parse_action_response(raw)
        assert isinstance(action, ChatReply)
        assert action.message == "I cannot do that."

    def test_missing_action_becomes_chat(self):
        action = parse_action_response('{"message": "hello"}')
        assert isinstance(action, ChatReply)
        assert action.message == "hello"


# ---------------------------------------------------------------------------
# Prompt and message building
# ---------------------------------------------------------------------------


class TestPromptBuilding:
    def test_system_prompt_embeds_context_and_date(self):
        prompt = build_system_prompt("--- USER CONTEXT ---\nX\n--- END ---", date(2026, 3, 10))
        assert "--- USER CONTEXT ---" in prompt
        assert "2026-03-10" in prompt
        assert DISCLAIMER in prompt

    def test_latest_message_not_duplicated(self):
        history = [
            ConversationMessage("assistant", "Hi"),
            ConversationMessage("user", "Spent 200 on chai"),
        ]
        messages = build_messages(history, "Spent 200 on chai")
        assert len(messages) == 2
        assert messages[-1] == {"role": "user", "content": "Spent 200 on chai"}

    def test_latest_message_appended_when_missing(self):
        messages = build_messages([ConversationMessage("assistant", "Hi")], "hello there")
        assert messages[-1] == {"role": "user", "content": "hello there"}


# ---------------------------------------------------------------------------
# infer_action (with mocked LLM)
# ---------------------------------------------------------------------------


class TestInferAction:
    @pytest.mark.asyncio
    async def test_returns_parsed_action(self):
        user = User(whatsapp_id="1")
        user.add_to_conversation("user", "salary is 60k")
        llm_reply = '{"action": "update_salary", "amount": 60000, "message": "Got it!"}'

        with patch("moneycoach.core.parser.complete", AsyncMock(return_value=llm_reply)) as mock_complete:
            action = await infer_action(user, "salary is 60k", "CTX")

        assert isinstance(action, UpdateSalary)
        assert action.amount == 60000
        kwargs = mock_complete.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert "CTX" in kwargs["system"]
        assert kwargs["messages"] == [{"role": "user", "content": "salary is 60k"}]

    @pytest.mark.asyncio
    async def test_provider_error_becomes_safe_chat(self):
        user = User(whatsapp_id="1")
        with patch("moneycoach.core.parser.complete", AsyncMock(side_effect=RuntimeError("boom"))):
            action = await infer_action(user, "hello", "CTX")
        assert isinstance(action, ChatReply)
        assert action.message == UNAVAILABLE_MESSAGE

    @pytest.mark.asyncio
    async def test_empty_reply_becomes_safe_chat(self):
        user = User(whatsapp_id="1")
        with patch("moneycoach.core.parser.complete", AsyncMock(return_value="")):
            action = await infer_action(user, "hello", "CTX")
        assert action.message == UNAVAILABLE_MESSAGE
