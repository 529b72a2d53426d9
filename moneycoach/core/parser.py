"""
MoneyCoach Assistant — LLM Action Parser.

Brain of the coach: sends the user's recent chat plus a factual ledger
summary to the configured LLM and turns its reply into exactly one typed
action (log a transaction, update salary, log a debt, log a goal, or just
chat).

The model is not trusted: any malformed reply, unknown action or provider
failure becomes a plain chat action, so the user always gets an answer.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from moneycoach.core.llm import complete

logger = logging.getLogger(__name__)

DISCLAIMER = (
    "Note: I am not a SEBI/RBI registered advisor. "
    "Treat this as education, not guaranteed financial advice."
)

CONFUSED_MESSAGE = "Sorry, I got confused for a moment. Could you say that again in simpler words?"
HICCUP_MESSAGE = "Sorry, I had a small hiccup. Could you try saying that again?"
UNAVAILABLE_MESSAGE = "I'm having a moment. Could you send that again in a few seconds? 🙏"


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------


def _coerce_number(value: Any) -> float | None:
    """Accept 1200, 1200.5, "1,200" or "₹1200"; anything else becomes None.

    Non-finite results (inf, nan, overflowing digit runs) also become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").replace("₹", "").strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _coerce_date(value: Any) -> date | None:
    """Accept ISO dates or datetimes; anything unparseable becomes None."""
    if value is None or isinstance(value, date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------------
# Action contract — one variant per "action" tag
# ---------------------------------------------------------------------------


class _ActionBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message: str


class LogTransaction(_ActionBase):
    """Money moved: an expense or an income.

    JSON example:
    {"action": "log_transaction", "item": "Pizza", "amount": 790,
     "category": "Food Delivery", "type": "Expense", "message": "..."}
    """
    action: Literal["log_transaction"] = "log_transaction"
    item: str | None = None
    amount: float | None = None
    category: str | None = None
    type: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> float | None:
        return _coerce_number(v)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> str | None:
        if isinstance(v, str) and v.strip().lower() in ("expense", "income"):
            return v.strip().title()
        return None


class UpdateSalary(_ActionBase):
    """JSON example: {"action": "update_salary", "amount": 60000, "message": "..."}"""
    action: Literal["update_salary"] = "update_salary"
    amount: float | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> float | None:
        return _coerce_number(v)


class LogDebt(_ActionBase):
    """A loan or card balance.

    JSON example:
    {"action": "log_debt", "lenderName": "HDFC Card", "totalAmount": 80000,
     "interestRate": 36, "emiAmount": 5000, "tenureMonths": 18,
     "dueDate": "2026-03-05", "message": "..."}
    """
    action: Literal["log_debt"] = "log_debt"
    lender_name: str | None = Field(default=None, alias="lenderName")
    total_amount: float | None = Field(default=None, alias="totalAmount")
    interest_rate: float | None = Field(default=None, alias="interestRate")
    emi_amount: float | None = Field(default=None, alias="emiAmount")
    tenure_months: int | None = Field(default=None, alias="tenureMonths")
    due_date: date | None = Field(default=None, alias="dueDate")

    @field_validator("total_amount", "interest_rate", "emi_amount", mode="before")
    @classmethod
    def _numbers(cls, v: Any) -> float | None:
        return _coerce_number(v)

    @field_validator("tenure_months", mode="before")
    @classmethod
    def _tenure(cls, v: Any) -> int | None:
        number = _coerce_number(v)
        return int(number) if number is not None else None

    @field_validator("due_date", mode="before")
    @classmethod
    def _due(cls, v: Any) -> date | None:
        return _coerce_date(v)


class LogGoal(_ActionBase):
    """A savings goal.

    JSON example:
    {"action": "log_goal", "goalName": "Wedding", "goalAmount": 500000,
     "goalTargetDate": "2027-12-01", "message": "..."}
    """
    action: Literal["log_goal"] = "log_goal"
    goal_name: str | None = Field(default=None, alias="goalName")
    goal_amount: float | None = Field(default=None, alias="goalAmount")
    goal_target_date: date | None = Field(default=None, alias="goalTargetDate")

    @field_validator("goal_amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> float | None:
        return _coerce_number(v)

    @field_validator("goal_target_date", mode="before")
    @classmethod
    def _target(cls, v: Any) -> date | None:
        return _coerce_date(v)


class ChatReply(_ActionBase):
    """Pure coaching reply, no ledger change."""
    action: Literal["chat"] = "chat"


Action = LogTransaction | UpdateSalary | LogDebt | LogGoal | ChatReply

_ACTION_TYPES: dict[str, type[_ActionBase]] = {
    "log_transaction": LogTransaction,
    "update_salary": UpdateSalary,
    "log_debt": LogDebt,
    "log_goal": LogGoal,
    "chat": ChatReply,
}


# ---------------------------------------------------------------------------
# System prompt for LLM
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
You are MoneyCoach, a WhatsApp money coach for individual users in India.

=== HARD BOUNDARIES ===
- You are NOT a SEBI/RBI registered advisor, CA, tax professional or portfolio manager.
- You only give general education, behavioural coaching and simple math on the data given to you.
- Never recommend specific stocks, mutual funds, ETFs or insurance products.
- Never promise or imply guaranteed returns.
- Never ask for OTPs, card numbers, CVV, UPI PIN, passwords or other secrets.

Whenever you talk about investing, loans, EMIs, tax, credit cards or insurance, end your reply with:
> {disclaimer}

=== TONE ===
- Friendly senior who understands Indian money life.
- English if the user prefers English, Hinglish (Hindi in Roman script) if they prefer Hinglish.
- Always talk about the user's money, never "your own".
- WhatsApp style: 1-3 short paragraphs, at most 1-2 bullet lists, at most one follow-up question.

=== DATA DISCIPLINE ===
1. Only mention rupee amounts that appear in the latest user message or in the USER CONTEXT below.
2. If salary, expenses or goal amounts are missing, do not invent them. Ask one clear question instead.
3. Use ₹ and rupees only.

{user_context}

=== COACHING FOCUS ===
- Cashflow first: income minus investing equals spending; the future self is the first bill.
- Spot lifestyle creep; suggest a 72-hour pause before non-essential spends above ₹3-5k.
- Debt buckets: toxic (20%+ interest), neutral (low interest), potentially good (sensible home/business). Clear toxic first.
- Emergency fund: start with 1 month of basic expenses, grow to 3-6 months.
- Simple habits: no-delivery weekends, saving half of any found money, automatic monthly saving.
- Tax and advanced topics only when the user asks, and suggest a professional.

=== JSON OUTPUT FORMAT (STRICT) ===
Return exactly ONE JSON object. No markdown fences, no text outside the JSON.

Keys:
- "action": one of "log_transaction", "update_salary", "log_debt", "log_goal", "chat"
- "message": the WhatsApp text to send the user
- Extra fields only when relevant:
  - log_transaction: "item" (string), "amount" (number), "category" (string), "type" ("Expense" or "Income")
  - update_salary: "amount" (number)
  - log_debt: "lenderName" (string), "totalAmount" (number), "interestRate" (number or null), "emiAmount" (number or null), "tenureMonths" (number or null), "dueDate" (YYYY-MM-DD or null)
  - log_goal: "goalName" (string), "goalAmount" (number), "goalTargetDate" (YYYY-MM-DD or null)

Rules:
- "log_transaction" only when the user clearly describes money moving (spent, paid, received, earned).
- "update_salary" only when they state or update their income.
- "log_debt" only when they describe a loan or card with an amount.
- "log_goal" only when they define a goal with at least a name and an amount.
- Otherwise use "chat".

Today's date is {today}.
"""


def build_system_prompt(user_context: str, today: date | None = None) -> str:
    return _SYSTEM_PROMPT.format(
        disclaimer=DISCLAIMER,
        user_context=user_context,
        today=(today or date.today()).isoformat(),
    )


def build_messages(history: list, latest_message: str) -> list[dict]:
    """Chat turns for the LLM: stored history, then the latest message.

    The latest message is not repeated when it is already the last turn.
    """
    messages = [{"role": m.role, "content": m.content} for m in history]
    last = messages[-1] if messages else None
    if not (last and last["role"] == "user" and last["content"] == latest_message):
        messages.append({"role": "user", "content": latest_message})
    return messages


# ---------------------------------------------------------------------------
# Response Cleaning Functions
# ---------------------------------------------------------------------------

def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def extract_json_object(text: str) -> dict | None:
    """Parse ``text`` as a JSON object, else the first object embedded in it."""
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            data, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(data, dict):
            return data
        start = text.find("{", start + 1)
    return None


# ---------------------------------------------------------------------------
# Parser functions
# ---------------------------------------------------------------------------


def parse_action_response(raw_text: str | None) -> Action:
    """Validate a raw LLM reply into one Action. Never raises."""
    data = extract_json_object(_clean_llm_response(raw_text or ""))
    if data is None:
        logger.error("Failed to parse LLM response as JSON — raw: '%s'", (raw_text or "")[:500])
        return ChatReply(message=CONFUSED_MESSAGE)

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        logger.warning("LLM response without a message, action=%r", data.get("action"))
        return ChatReply(message=HICCUP_MESSAGE)

    action_name = data.get("action")
    model_cls = _ACTION_TYPES.get(action_name) if isinstance(action_name, str) else None
    if model_cls is None:
        logger.warning("LLM returned unknown action: %r, defaulting to chat", action_name)
        return ChatReply(message=message)

    try:
        parsed = model_cls.model_validate(data)
    except ValidationError as exc:
        logger.warning("LLM %s payload failed validation: %s", action_name, exc)
        return ChatReply(message=message)

    logger.info("Parsed action: %s", parsed.action)
    return parsed


async def infer_action(user: Any, latest_message: str, user_context: str) -> Action:
    """Ask the LLM what to do with ``latest_message``. Never raises."""
    system_prompt = build_system_prompt(user_context)
    messages = build_messages(user.conversation_history, latest_message)

    try:
        raw_text = await complete(
            system=system_prompt,
            messages=messages,
            max_tokens=1024,
            json_mode=True,
        )
    except Exception as exc:
        logger.error("LLM call failed for %s: %s", user.whatsapp_id, exc)
        return ChatReply(message=UNAVAILABLE_MESSAGE)

    if not raw_text:
        logger.error("Empty LLM response for %s", user.whatsapp_id)
        return ChatReply(message=UNAVAILABLE_MESSAGE)

    logger.debug("LLM raw response: %s", raw_text)
    return parse_action_response(raw_text)
