"""EventSub webhook HMAC-SHA256 signature verification.

Twitch signs ``message-id || message-timestamp || raw body`` with the secret
given at subscription time and sends ``sha256=<hex>`` in the
``twitch-eventsub-message-signature`` header.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import TYPE_CHECKING

from eventsub_gate.errors import SignatureInvalidError
from eventsub_gate.webhook.codec import hex_bytes, utf8

if TYPE_CHECKING:
    from eventsub_gate.webhook.models import WebhookDeliveryHeaders

HMAC_PREFIX = "sha256="


def hmac_message(message_id: str, timestamp: str, body: bytes) -> bytes:
    """Canonical signed message. ``body`` must be the unparsed request bytes."""
    return utf8(message_id) + utf8(timestamp) + body


def _digest(secret: str, message: bytes) -> bytes:
    return hmac.new(utf8(secret), message, hashlib.sha256).digest()


def compute_signature(secret: str, message_id: str, timestamp: str, body: bytes) -> str:
    """Return the header value Twitch would send for this delivery."""
    return HMAC_PREFIX + _digest(secret, hmac_message(message_id, timestamp, body)).hex()


def verify_signature(
    secret: str, headers: WebhookDeliveryHeaders, body: bytes,
) -> bool:
    """Return True if the delivery's signature header matches.

    Malformed or missing signatures verify to False, never raise.
    Constant-time comparison via hmac.compare_digest.
    """
    signature = headers.message_signature
    if signature.startswith(HMAC_PREFIX):
        signature = signature[len(HMAC_PREFIX):]
    provided = hex_bytes(signature)
    if provided is None:
        return False

    expected = _digest(
        secret,
        hmac_message(headers.message_id, headers.message_timestamp, body),
    )
    return hmac.compare_digest(provided, expected)


def require_valid_signature(
    secret: str, headers: WebhookDeliveryHeaders, body: bytes,
) -> None:
    """Raise SignatureInvalidError unless ``verify_signature`` accepts the delivery."""
    if not verify_signature(secret, headers, body):
        raise SignatureInvalidError(
            f"Signature mismatch for message {headers.message_id or '<missing id>'}"
        )
