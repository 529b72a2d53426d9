"""
MoneyCoach Assistant — Data Models.

The Ledger pillar: users, their transactions, debts and goals persist in
SQLite across restarts. Every row is keyed by the user's WhatsApp id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

HISTORY_LIMIT = 40

EXPENSE = "Expense"
INCOME = "Income"


def classify_debt(interest_rate: float | None) -> str:
    """Bucket a debt by its annual interest rate (percent)."""
    if interest_rate is None:
        return "unknown"
    if interest_rate >= 20:
        return "toxic"
    if interest_rate >= 10:
        return "neutral"
    return "potentially_good"


@dataclass
class ConversationMessage:
    """One turn of the chat kept for inference context."""

    role: str        # "user" | "assistant" | "system"
    content: str
    timestamp: str = ""   # ISO datetime

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> ConversationMessage:
        return cls(
            role=data.get("role", "user"),
            content=data.get("content", ""),
            timestamp=data.get("timestamp", ""),
        )


@dataclass
class User:
    """A WhatsApp user and their coaching profile.

    Created on the first message from an unseen number; never deleted.
    """

    whatsapp_id: str
    name: str | None = None
    monthly_salary: float | None = None
    preferred_language: str = "english"   # "english" | "hinglish"
    streak: int = 0
    last_active_date: date | None = None
    conversation_history: list[ConversationMessage] = field(default_factory=list)
    work_hours_per_day: float = 8
    work_days_per_month: float = 22
    strict_mode: bool = False
    last_transaction_at: datetime | None = None
    created_at: str = ""

    def add_to_conversation(
        self,
        role: str,
        content: str,
        limit: int = HISTORY_LIMIT,
        now: datetime | None = None,
    ) -> None:
        """Append a turn, dropping the oldest ones beyond ``limit``."""
        stamp = (now or datetime.now()).isoformat()
        self.conversation_history.append(ConversationMessage(role, content, stamp))
        if len(self.conversation_history) > limit:
            self.conversation_history = self.conversation_history[-limit:]

    def clear_conversation(self) -> None:
        self.conversation_history = []

    def update_streak(self, today: date | None = None) -> None:
        """Advance the daily-activity streak.

        Consecutive day → +1, a gap → reset to 1, same day → unchanged.
        """
        today = today or date.today()

        if self.last_active_date is None:
            self.streak = 1
        else:
            gap = (today - self.last_active_date).days
            if gap == 1:
                self.streak += 1
            elif gap > 1:
                self.streak = 1

        self.last_active_date = today


@dataclass
class Transaction:
    """A single logged expense or income. Immutable once stored."""

    id: int
    whatsapp_id: str
    item: str
    amount: float
    category: str = "Uncategorized"
    type: str = EXPENSE          # "Expense" | "Income"
    date: datetime = field(default_factory=datetime.now)


@dataclass
class Debt:
    """A loan or card balance. ``classification`` is fixed at creation."""

    id: int
    whatsapp_id: str
    lender_name: str
    total_amount: float
    interest_rate: float | None = None
    emi_amount: float | None = None
    tenure_months: int | None = None
    due_date: date | None = None
    classification: str = "unknown"
    is_active: bool = True


@dataclass
class Goal:
    """A savings target the user is working towards."""

    id: int
    whatsapp_id: str
    goal_name: str
    goal_amount: float
    goal_target_date: date | None = None
    saved_so_far: float = 0
    is_active: bool = True
