"""Shared test fixtures and configuration.

Sets up fake environment variables so moneycoach.config doesn't sys.exit(),
and provides temp-file ledger fixtures.
"""

import os
import tempfile

# Patch env vars BEFORE any moneycoach imports
os.environ.setdefault("WHATSAPP_PHONE_NUMBER_ID", "1234567890")
os.environ.setdefault("WHATSAPP_ACCESS_TOKEN", "fake-access-token-for-tests")
os.environ.setdefault("WHATSAPP_VERIFY_TOKEN", "fake-verify-token")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("DATABASE_PATH", os.path.join(tempfile.gettempdir(), "moneycoach-tests.db"))

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_ledger.db")


@pytest.fixture
def ledger(tmp_db_path):
    """Return a Ledger backed by a temp file."""
    from moneycoach.data.db import Ledger
    return Ledger(db_path=tmp_db_path)


@pytest.fixture
def user_db(tmp_db_path):
    from moneycoach.data.db import UserDB
    return UserDB(db_path=tmp_db_path)


@pytest.fixture
def user():
    """A fresh in-memory user with a known salary."""
    from moneycoach.data.models import User
    return User(whatsapp_id="919800000001", name="Asha", monthly_salary=60000)
