"""FastAPI application receiving Twitch EventSub webhook deliveries."""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from eventsub_gate.audit.logger import AuditLogger
from eventsub_gate.models import DEFAULT_AGE_WARNING_MS, SubscriptionType
from eventsub_gate.webhook.dispatcher import NotificationDispatcher
from eventsub_gate.webhook.forwarder import NotificationForwarder
from eventsub_gate.webhook.staleness import StalenessCheck

logger = logging.getLogger(__name__)


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    secret = os.environ["TWITCH_SECRET"]
    age_warning = os.environ.get("TWITCH_AGE_WARNING")
    event_type = os.environ.get("TWITCH_EVENT_TYPE", SubscriptionType.STREAM_ONLINE.value)
    audit_log = os.environ.get("AUDIT_LOG_PATH")
    audit_logger = AuditLogger.from_env(audit_log) if audit_log else None
    return create_app(
        secret,
        expected_type=event_type,
        age_warning_ms=int(age_warning) if age_warning else DEFAULT_AGE_WARNING_MS,
        audit_logger=audit_logger,
    )


def create_app(
    secret: str,
    expected_type: str = SubscriptionType.STREAM_ONLINE.value,
    age_warning_ms: int = DEFAULT_AGE_WARNING_MS,
    forwarder: NotificationForwarder | None = None,
    audit_logger: AuditLogger | None = None,
    webhook_path: str = "/webhook",
) -> FastAPI:
    """Create the receiver app: ``GET /health`` and ``POST {webhook_path}``."""
    app = FastAPI(docs_url=None, redoc_url=None)
    dispatcher = NotificationDispatcher(
        secret,
        expected_type=expected_type,
        staleness=StalenessCheck(age_warning_ms),
        forwarder=forwarder,
        audit_logger=audit_logger,
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(webhook_path)
    async def webhook(request: Request) -> Response:
        # Read once; the same bytes feed signature check and JSON parsing
        body = await request.body()
        result = await dispatcher.dispatch(
            request.headers,
            body,
            source_ip=request.client.host if request.client else None,
        )
        if result.text is not None:
            return PlainTextResponse(result.text, status_code=result.status_code)
        return Response(status_code=result.status_code)

    logger.info("EventSub receiver listening on %s for %s", webhook_path, expected_type)
    return app
