"""Shared test fixtures for eventsub-gate."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest

from eventsub_gate.audit.logger import AuditLogger
from eventsub_gate.models import AuditEvent, AuditEventType, RiskLevel
from eventsub_gate.webhook.signature import compute_signature

SECRET = "s3cRe7-webhook-secret"
CLIENT_ID = "test-client-id"
CLIENT_SECRET = "test-client-secret"

SUBSCRIPTION_ID = "f1c2a387-161a-49f9-a165-0f21d7a4e1c4"
BROADCASTER_ID = "1337"


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def now_timestamp() -> str:
    """RFC 3339 timestamp as Twitch sends it (nanosecond precision, Z suffix)."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f") + "123Z"


def make_subscription(**kwargs: Any) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "id": SUBSCRIPTION_ID,
        "status": "enabled",
        "type": "stream.online",
        "version": "1",
        "cost": 0,
        "condition": {"broadcaster_user_id": BROADCASTER_ID},
        "transport": {
            "method": "webhook",
            "callback": "https://example.com/webhook",
        },
        "created_at": "2019-11-16T10:11:12.634234626Z",
    }
    defaults.update(kwargs)
    return defaults


def make_stream_online_event(**kwargs: Any) -> dict[str, Any]:
    defaults: dict[str, Any] = {
        "id": "9001",
        "broadcaster_user_id": BROADCASTER_ID,
        "broadcaster_user_login": "cool_user",
        "broadcaster_user_name": "Cool_User",
        "type": "live",
        "started_at": "2020-10-11T10:11:12.123Z",
    }
    defaults.update(kwargs)
    return defaults


def make_notification_payload(**subscription: Any) -> dict[str, Any]:
    return {
        "subscription": make_subscription(**subscription),
        "event": make_stream_online_event(),
    }


def make_verification_payload(
    challenge: str = "pogchamp-kappa-360noscope-vohiyo", **subscription: Any,
) -> dict[str, Any]:
    return {
        "challenge": challenge,
        "subscription": make_subscription(
            **{"status": "webhook_callback_verification_pending", **subscription},
        ),
    }


def make_revocation_payload(**subscription: Any) -> dict[str, Any]:
    return {
        "subscription": make_subscription(
            **{"status": "authorization_revoked", **subscription},
        ),
    }


def make_signed_headers(
    body: bytes,
    message_type: str = "notification",
    secret: str = SECRET,
    message_id: str = "befa7b53-d79d-478f-86b9-120f112b044e",
    timestamp: str | None = None,
) -> dict[str, str]:
    """Headers for ``body`` signed the way Twitch signs deliveries."""
    timestamp = timestamp or now_timestamp()
    return {
        "twitch-eventsub-message-id": message_id,
        "twitch-eventsub-message-retry": "0",
        "twitch-eventsub-message-type": message_type,
        "twitch-eventsub-message-signature": compute_signature(
            secret, message_id, timestamp, body,
        ),
        "twitch-eventsub-message-timestamp": timestamp,
        "twitch-eventsub-subscription-type": "stream.online",
        "twitch-eventsub-subscription-version": "1",
    }


def encode(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode()


def make_audit_event(**kwargs: Any) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.SIGNATURE_INVALID,
        "action": "notification",
        "result": "rejected",
        "risk_level": RiskLevel.HIGH,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)
