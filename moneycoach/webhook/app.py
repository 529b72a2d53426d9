"""
MoneyCoach Assistant — FastAPI application.

Routes:
    GET  /health       liveness probe
    GET  /webhook      WhatsApp verification handshake
    POST /webhook      inbound messages (acknowledged before processing)
    GET  /admin/stats  user and transaction counts
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from moneycoach.adapters.whatsapp_media import WhatsAppMedia
from moneycoach.adapters.whatsapp_messenger import WhatsAppMessenger
from moneycoach.config import settings
from moneycoach.core.action_service import ActionService
from moneycoach.core.dedup import DedupCache
from moneycoach.data.db import Ledger, LedgerError
from moneycoach.ports.media_port import MediaPort
from moneycoach.ports.messaging_port import MessagingPort
from moneycoach.webhook.handler import WebhookHandler

logger = logging.getLogger(__name__)

SERVICE_NAME = "moneycoach"
ACTIVE_WINDOW_DAYS = 7


def build_app(
    ledger: Ledger | None = None,
    messenger: MessagingPort | None = None,
    media: MediaPort | None = None,
    dedup: DedupCache | None = None,
) -> FastAPI:
    """Wire the ledger, transports and handler into a FastAPI app.

    Every collaborator can be injected; defaults come from settings.
    """
    ledger = ledger or Ledger()
    messenger = messenger or WhatsAppMessenger()
    media = media or WhatsAppMedia()
    handler = WebhookHandler(
        ActionService(ledger, history_limit=settings.HISTORY_LIMIT),
        messenger,
        media,
        dedup or DedupCache(settings.DEDUP_WINDOW_SECONDS),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("MoneyCoach webhook starting (db=%s)", ledger.db_path)
        yield
        logger.info("MoneyCoach webhook shutting down")
        for transport in (messenger, media):
            close = getattr(transport, "aclose", None)
            if close is not None:
                await close()

    app = FastAPI(title="MoneyCoach Assistant", lifespan=lifespan)
    app.state.ledger = ledger
    app.state.handler = handler

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/webhook")
    async def verify(request: Request):
        params = request.query_params
        mode = params.get("hub.mode")
        token = params.get("hub.verify_token")

        if mode == "subscribe" and token == settings.WHATSAPP_VERIFY_TOKEN:
            logger.info("Webhook verified successfully")
            return PlainTextResponse(params.get("hub.challenge", ""))

        logger.warning("Webhook verification failed (mode=%s)", mode)
        return PlainTextResponse("Forbidden", status_code=403)

    @app.post("/webhook")
    async def receive(request: Request):
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Webhook POST with non-JSON body ignored")
            return PlainTextResponse("OK")

        handler.handle_payload(body)
        return PlainTextResponse("OK")

    @app.get("/admin/stats")
    async def stats():
        since = date.today() - timedelta(days=ACTIVE_WINDOW_DAYS)
        try:
            return {
                "totalUsers": ledger.users.count_users(),
                "totalTransactions": ledger.transactions.count(),
                "activeLast7Days": ledger.users.count_active_since(since),
            }
        except LedgerError as exc:
            logger.error("Error reading admin stats: %s", exc)
            return JSONResponse({"error": "Internal server error"}, status_code=500)

    return app
