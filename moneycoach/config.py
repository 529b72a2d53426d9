"""
MoneyCoach Assistant — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from moneycoach/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # WhatsApp Cloud API
    WHATSAPP_PHONE_NUMBER_ID: str
    WHATSAPP_ACCESS_TOKEN: str
    WHATSAPP_VERIFY_TOKEN: str
    WHATSAPP_API_VERSION: str = "v20.0"

    # LLM — provider-agnostic (openai-compatible, anthropic, gemini, cohere)
    LLM_PROVIDER: str = "openai"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str
    LLM_BASE_URL: str = ""       # openai provider only (e.g. Groq endpoint)

    # Speech-to-text and bill vision — any OpenAI-compatible endpoint
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    TRANSCRIPTION_MODEL: str = "whisper-large-v3"
    VISION_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"

    # SQLite
    DATABASE_PATH: str = "data/moneycoach.db"

    # Pipeline tuning
    DEDUP_WINDOW_SECONDS: float = 60.0
    HISTORY_LIMIT: int = 40

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    @field_validator("DEDUP_WINDOW_SECONDS", mode="before")
    @classmethod
    def parse_window(cls, v: str | float) -> float:
        return float(v)

    @field_validator("HISTORY_LIMIT", "PORT", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_level(cls, v: str) -> str:
        return str(v).upper()


_REQUIRED = (
    "WHATSAPP_PHONE_NUMBER_ID",
    "WHATSAPP_ACCESS_TOKEN",
    "WHATSAPP_VERIFY_TOKEN",
    "LLM_API_KEY",
)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    for name in _REQUIRED:
        value = os.getenv(name, "")
        if not value or value.startswith("your-"):
            print(f"ERROR: {name} is missing or not set in .env", file=sys.stderr)
            sys.exit(1)

    llm_api_key = os.getenv("LLM_API_KEY", "")

    return Settings(
        WHATSAPP_PHONE_NUMBER_ID=os.getenv("WHATSAPP_PHONE_NUMBER_ID", ""),
        WHATSAPP_ACCESS_TOKEN=os.getenv("WHATSAPP_ACCESS_TOKEN", ""),
        WHATSAPP_VERIFY_TOKEN=os.getenv("WHATSAPP_VERIFY_TOKEN", ""),
        WHATSAPP_API_VERSION=os.getenv("WHATSAPP_API_VERSION", "v20.0"),
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "openai"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        LLM_BASE_URL=os.getenv("LLM_BASE_URL", ""),
        # Transcription and vision reuse the LLM key unless given their own
        OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", "") or llm_api_key,
        OPENAI_BASE_URL=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        TRANSCRIPTION_MODEL=os.getenv("TRANSCRIPTION_MODEL", "whisper-large-v3"),
        VISION_MODEL=os.getenv("VISION_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/moneycoach.db"),
        DEDUP_WINDOW_SECONDS=os.getenv("DEDUP_WINDOW_SECONDS", "60"),
        HISTORY_LIMIT=os.getenv("HISTORY_LIMIT", "40"),
        HOST=os.getenv("HOST", "0.0.0.0"),
        PORT=os.getenv("PORT", "3000"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton — imported by all other modules as:
#   from moneycoach.config import settings
settings = _load_settings()
