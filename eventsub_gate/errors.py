"""Exception taxonomy for the webhook receiver and the Helix management client."""

from __future__ import annotations


class EventSubError(Exception):
    """Base class for all eventsub-gate errors."""


# --- Receiver (contained in the dispatcher, surfaced only as status codes) ---


class SignatureInvalidError(EventSubError):
    """The delivery's HMAC signature does not match the shared secret."""


class UnsupportedEventTypeError(EventSubError):
    """The delivery's subscription type is not the one this deployment handles."""

    def __init__(self, received: str, expected: str) -> None:
        super().__init__(f"Unsupported subscription type {received!r} (expected {expected!r})")
        self.received = received
        self.expected = expected


class MalformedDeliveryError(EventSubError):
    """Body is not valid JSON, does not match its message type, or a header is missing."""


# --- Upstream REST ---


class FetchError(EventSubError):
    """Non-success HTTP status from the Twitch API."""

    def __init__(self, status: int, reason: str) -> None:
        super().__init__(f"{status}: {reason}")
        self.status = status
        self.reason = reason


class TokenLifecycleError(FetchError):
    """Failure acquiring or revoking an app access token."""


class AuthError(TokenLifecycleError):
    """Client-credentials token could not be acquired."""


class TokenRevocationError(TokenLifecycleError):
    """App access token could not be revoked."""
