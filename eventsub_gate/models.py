"""Shared constants, enums and audit models for eventsub-gate."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

TWITCH_HELIX_BASE = "https://api.twitch.tv/helix"
TWITCH_ID_BASE = "https://id.twitch.tv"

DEFAULT_AGE_WARNING_MS = 300_000

# --- Enums ---


class MessageHeader(str, Enum):
    MESSAGE_ID = "twitch-eventsub-message-id"
    MESSAGE_TIMESTAMP = "twitch-eventsub-message-timestamp"
    MESSAGE_SIGNATURE = "twitch-eventsub-message-signature"
    MESSAGE_TYPE = "twitch-eventsub-message-type"
    MESSAGE_RETRY = "twitch-eventsub-message-retry"
    SUBSCRIPTION_TYPE = "twitch-eventsub-subscription-type"
    SUBSCRIPTION_VERSION = "twitch-eventsub-subscription-version"


class MessageType(str, Enum):
    NOTIFICATION = "notification"
    WEBHOOK_CALLBACK_VERIFICATION = "webhook_callback_verification"
    REVOCATION = "revocation"


class SubscriptionType(str, Enum):
    STREAM_ONLINE = "stream.online"
    STREAM_OFFLINE = "stream.offline"
    CHANNEL_UPDATE = "channel.update"
    CHANNEL_FOLLOW = "channel.follow"
    CHANNEL_RAID = "channel.raid"
    CHANNEL_SUBSCRIBE = "channel.subscribe"
    CHANNEL_CHEER = "channel.cheer"
    USER_UPDATE = "user.update"


class SubscriptionStatus(str, Enum):
    ENABLED = "enabled"
    WEBHOOK_CALLBACK_VERIFICATION_PENDING = "webhook_callback_verification_pending"
    WEBHOOK_CALLBACK_VERIFICATION_FAILED = "webhook_callback_verification_failed"
    NOTIFICATION_FAILURES_EXCEEDED = "notification_failures_exceeded"
    AUTHORIZATION_REVOKED = "authorization_revoked"
    MODERATOR_REMOVED = "moderator_removed"
    USER_REMOVED = "user_removed"
    VERSION_REMOVED = "version_removed"
    BETA_MAINTENANCE = "beta_maintenance"
    WEBSOCKET_DISCONNECTED = "websocket_disconnected"
    WEBSOCKET_FAILED_PING_PONG = "websocket_failed_ping_pong"
    WEBSOCKET_RECEIVED_INBOUND_TRAFFIC = "websocket_received_inbound_traffic"
    WEBSOCKET_CONNECTION_UNUSED = "websocket_connection_unused"
    WEBSOCKET_INTERNAL_ERROR = "websocket_internal_error"
    WEBSOCKET_NETWORK_TIMEOUT = "websocket_network_timeout"
    WEBSOCKET_NETWORK_ERROR = "websocket_network_error"


class TransportMethod(str, Enum):
    WEBHOOK = "webhook"
    WEBSOCKET = "websocket"
    CONDUIT = "conduit"


class AuditEventType(str, Enum):
    SIGNATURE_INVALID = "signature_invalid"
    STALE_DELIVERY = "stale_delivery"
    UNSUPPORTED_EVENT_TYPE = "unsupported_event_type"
    MALFORMED_DELIVERY = "malformed_delivery"
    CHALLENGE = "challenge"
    NOTIFICATION = "notification"
    REVOCATION = "revocation"


class RiskLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    message_id: str | None = None
    action: str
    result: str  # "accepted" | "rejected" | "warning"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
