"""
MoneyCoach Assistant — Entry Point.

Single entry point: `python main.py` starts the WhatsApp webhook server.
"""

import logging

from moneycoach.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

import uvicorn

from moneycoach.webhook.app import build_app


def main() -> None:
    uvicorn.run(build_app(), host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
