"""
MoneyCoach Assistant — Ledger Database.

The Ledger pillar: users, transactions, debts and goals persist in SQLite.
Every store opens a short-lived connection per operation, so concurrent
message tasks never share a connection (last write wins on a user row).
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator

from moneycoach.data.models import (
    EXPENSE,
    ConversationMessage,
    Debt,
    Goal,
    Transaction,
    User,
    classify_debt,
)

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Raised when any ledger read or write fails."""


def _iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    return value.isoformat()


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value[:10])


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


class _SQLiteStore:
    """Shared connection handling for the ledger tables."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from moneycoach.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._session() as conn:
            self._init_db(conn)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and always closes."""
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise LedgerError(f"Cannot open ledger at {self._db_path}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise LedgerError(str(exc)) from exc
        finally:
            conn.close()

    def _init_db(self, conn: sqlite3.Connection) -> None:
        raise NotImplementedError


class UserDB(_SQLiteStore):
    """SQLite-backed storage for WhatsApp users and their chat history."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                whatsapp_id          TEXT PRIMARY KEY,
                name                 TEXT,
                monthly_salary       REAL,
                preferred_language   TEXT    NOT NULL DEFAULT 'english',
                streak               INTEGER NOT NULL DEFAULT 0,
                last_active_date     TEXT,
                conversation_history TEXT    NOT NULL DEFAULT '[]',
                work_hours_per_day   REAL    NOT NULL DEFAULT 8,
                work_days_per_month  REAL    NOT NULL DEFAULT 22,
                strict_mode          INTEGER NOT NULL DEFAULT 0,
                last_transaction_at  TEXT,
                created_at           TEXT    NOT NULL
            )
        """)
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        history = [
            ConversationMessage.from_dict(item)
            for item in json.loads(row["conversation_history"] or "[]")
        ]
        return User(
            whatsapp_id=row["whatsapp_id"],
            name=row["name"],
            monthly_salary=row["monthly_salary"],
            preferred_language=row["preferred_language"],
            streak=row["streak"],
            last_active_date=_parse_date(row["last_active_date"]),
            conversation_history=history,
            work_hours_per_day=row["work_hours_per_day"],
            work_days_per_month=row["work_days_per_month"],
            strict_mode=bool(row["strict_mode"]),
            last_transaction_at=_parse_datetime(row["last_transaction_at"]),
            created_at=row["created_at"],
        )

    def get_user(self, whatsapp_id: str) -> User | None:
        """Fetch a user by WhatsApp id."""
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE whatsapp_id = ?", (whatsapp_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_or_create(self, whatsapp_id: str, profile_name: str | None = None) -> User:
        """Return the user for ``whatsapp_id``, registering them if unseen.

        An existing user without a name picks up ``profile_name``.
        """
        user = self.get_user(whatsapp_id)

        if user is None:
            now = datetime.now().isoformat(timespec="seconds")
            with self._session() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO users (whatsapp_id, name, created_at) VALUES (?, ?, ?)",
                    (whatsapp_id, profile_name, now),
                )
            logger.info("New user created: %s", whatsapp_id)
            return self.get_user(whatsapp_id)

        if profile_name and not user.name:
            user.name = profile_name
            with self._session() as conn:
                conn.execute(
                    "UPDATE users SET name = ? WHERE whatsapp_id = ?",
                    (profile_name, whatsapp_id),
                )
        return user

    def save_user(self, user: User) -> None:
        """Persist every mutable field of ``user``."""
        history = json.dumps([m.to_dict() for m in user.conversation_history])
        with self._session() as conn:
            conn.execute(
                """
                UPDATE users SET
                    name = ?, monthly_salary = ?, preferred_language = ?,
                    streak = ?, last_active_date = ?, conversation_history = ?,
                    work_hours_per_day = ?, work_days_per_month = ?,
                    strict_mode = ?, last_transaction_at = ?
                WHERE whatsapp_id = ?
                """,
                (
                    user.name, user.monthly_salary, user.preferred_language,
                    user.streak, _iso(user.last_active_date), history,
                    user.work_hours_per_day, user.work_days_per_month,
                    int(user.strict_mode), _iso(user.last_transaction_at),
                    user.whatsapp_id,
                ),
            )

    def update_salary(self, user: User, amount: float) -> User:
        """Set the user's monthly salary."""
        user.monthly_salary = amount
        with self._session() as conn:
            conn.execute(
                "UPDATE users SET monthly_salary = ? WHERE whatsapp_id = ?",
                (amount, user.whatsapp_id),
            )
        logger.info("Salary updated for %s: %s", user.whatsapp_id, amount)
        return user

    def count_users(self) -> int:
        with self._session() as conn:
            return conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]

    def count_active_since(self, since: date) -> int:
        """Count users whose last activity falls on or after ``since``."""
        with self._session() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM users WHERE last_active_date >= ?",
                (since.isoformat(),),
            ).fetchone()[0]


class TransactionDB(_SQLiteStore):
    """SQLite-backed storage for logged expenses and income."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                whatsapp_id TEXT NOT NULL,
                item        TEXT NOT NULL,
                amount      REAL NOT NULL,
                category    TEXT NOT NULL DEFAULT 'Uncategorized',
                type        TEXT NOT NULL DEFAULT 'Expense',
                date        TEXT NOT NULL
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_transactions_user_date "
            "ON transactions (whatsapp_id, date DESC)"
        )
        logger.debug("Transactions table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            whatsapp_id=row["whatsapp_id"],
            item=row["item"],
            amount=row["amount"],
            category=row["category"],
            type=row["type"],
            date=datetime.fromisoformat(row["date"]),
        )

    def add_transaction(
        self,
        whatsapp_id: str,
        item: str,
        amount: float,
        category: str = "Uncategorized",
        type: str = EXPENSE,
        when: datetime | None = None,
    ) -> Transaction:
        """Insert a transaction dated at processing time (or ``when``)."""
        when = (when or datetime.now()).replace(microsecond=0)
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO transactions (whatsapp_id, item, amount, category, type, date)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (whatsapp_id, item, amount, category, type, _iso(when)),
            )
            txn_id = cursor.lastrowid

        txn = Transaction(
            id=txn_id,
            whatsapp_id=whatsapp_id,
            item=item,
            amount=amount,
            category=category,
            type=type,
            date=when,
        )
        logger.info("Transaction logged: #%d %s %s %s [%s]", txn_id, type, item, amount, category)
        return txn

    def list_between(
        self,
        whatsapp_id: str,
        start: datetime,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        """Transactions with ``start <= date < end``, newest first."""
        query = "SELECT * FROM transactions WHERE whatsapp_id = ? AND date >= ?"
        params: list = [whatsapp_id, _iso(start)]
        if end is not None:
            query += " AND date < ?"
            params.append(_iso(end))
        query += " ORDER BY date DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._session() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def count(self) -> int:
        with self._session() as conn:
            return conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]


class DebtDB(_SQLiteStore):
    """SQLite-backed storage for loans and card balances."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS debts (
                id             INTEGER PRIMARY KEY AUTOINCREMENT,
                whatsapp_id    TEXT    NOT NULL,
                lender_name    TEXT    NOT NULL,
                total_amount   REAL    NOT NULL,
                interest_rate  REAL,
                emi_amount     REAL,
                tenure_months  INTEGER,
                due_date       TEXT,
                classification TEXT    NOT NULL DEFAULT 'unknown',
                is_active      INTEGER NOT NULL DEFAULT 1,
                created_at     TEXT    NOT NULL
            )
        """)
        logger.debug("Debts table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_debt(row: sqlite3.Row) -> Debt:
        return Debt(
            id=row["id"],
            whatsapp_id=row["whatsapp_id"],
            lender_name=row["lender_name"],
            total_amount=row["total_amount"],
            interest_rate=row["interest_rate"],
            emi_amount=row["emi_amount"],
            tenure_months=row["tenure_months"],
            due_date=_parse_date(row["due_date"]),
            classification=row["classification"],
            is_active=bool(row["is_active"]),
        )

    def add_debt(
        self,
        whatsapp_id: str,
        lender_name: str,
        total_amount: float,
        interest_rate: float | None = None,
        emi_amount: float | None = None,
        tenure_months: int | None = None,
        due_date: date | None = None,
    ) -> Debt:
        """Insert an active debt; classification is derived from the rate."""
        classification = classify_debt(interest_rate)
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO debts
                    (whatsapp_id, lender_name, total_amount, interest_rate,
                     emi_amount, tenure_months, due_date, classification,
                     is_active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                """,
                (
                    whatsapp_id, lender_name, total_amount, interest_rate,
                    emi_amount, tenure_months, _iso(due_date), classification,
                    datetime.now().isoformat(timespec="seconds"),
                ),
            )
            debt_id = cursor.lastrowid

        logger.info(
            "Debt logged: #%d %s %s (%s)", debt_id, lender_name, total_amount, classification,
        )
        return Debt(
            id=debt_id,
            whatsapp_id=whatsapp_id,
            lender_name=lender_name,
            total_amount=total_amount,
            interest_rate=interest_rate,
            emi_amount=emi_amount,
            tenure_months=tenure_months,
            due_date=due_date,
            classification=classification,
            is_active=True,
        )

    def get_debt(self, debt_id: int) -> Debt | None:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM debts WHERE id = ?", (debt_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_debt(row)

    def list_active(self, whatsapp_id: str) -> list[Debt]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM debts WHERE whatsapp_id = ? AND is_active = 1 ORDER BY id",
                (whatsapp_id,),
            ).fetchall()
        return [self._row_to_debt(r) for r in rows]


class GoalDB(_SQLiteStore):
    """SQLite-backed storage for savings goals."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS goals (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                whatsapp_id      TEXT    NOT NULL,
                goal_name        TEXT    NOT NULL,
                goal_amount      REAL    NOT NULL,
                goal_target_date TEXT,
                saved_so_far     REAL    NOT NULL DEFAULT 0,
                is_active        INTEGER NOT NULL DEFAULT 1,
                created_at       TEXT    NOT NULL
            )
        """)
        logger.debug("Goals table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_goal(row: sqlite3.Row) -> Goal:
        return Goal(
            id=row["id"],
            whatsapp_id=row["whatsapp_id"],
            goal_name=row["goal_name"],
            goal_amount=row["goal_amount"],
            goal_target_date=_parse_date(row["goal_target_date"]),
            saved_so_far=row["saved_so_far"],
            is_active=bool(row["is_active"]),
        )

    def add_goal(
        self,
        whatsapp_id: str,
        goal_name: str,
        goal_amount: float,
        goal_target_date: date | None = None,
    ) -> Goal:
        """Insert an active goal with nothing saved yet."""
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO goals
                    (whatsapp_id, goal_name, goal_amount, goal_target_date,
                     saved_so_far, is_active, created_at)
                VALUES (?, ?, ?, ?, 0, 1, ?)
                """,
                (
                    whatsapp_id, goal_name, goal_amount, _iso(goal_target_date),
                    datetime.now().isoformat(timespec="seconds"),
                ),
            )
            goal_id = cursor.lastrowid

        logger.info("Goal logged: #%d '%s' %s", goal_id, goal_name, goal_amount)
        return Goal(
            id=goal_id,
            whatsapp_id=whatsapp_id,
            goal_name=goal_name,
            goal_amount=goal_amount,
            goal_target_date=goal_target_date,
        )

    def list_active(self, whatsapp_id: str) -> list[Goal]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM goals WHERE whatsapp_id = ? AND is_active = 1 ORDER BY id",
                (whatsapp_id,),
            ).fetchall()
        return [self._row_to_goal(r) for r in rows]

    def earliest_target_goal(self, whatsapp_id: str) -> Goal | None:
        """The active goal with the nearest target date, if any has one."""
        with self._session() as conn:
            row = conn.execute(
                """
                SELECT * FROM goals
                WHERE whatsapp_id = ? AND is_active = 1 AND goal_target_date IS NOT NULL
                ORDER BY goal_target_date, id
                LIMIT 1
                """,
                (whatsapp_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_goal(row)


class Ledger:
    """All ledger stores over one SQLite file."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from moneycoach.config import settings
            db_path = settings.DATABASE_PATH

        self.db_path = db_path
        self.users = UserDB(db_path)
        self.transactions = TransactionDB(db_path)
        self.debts = DebtDB(db_path)
        self.goals = GoalDB(db_path)
