"""Data models for inbound EventSub webhook deliveries."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator

from eventsub_gate.errors import MalformedDeliveryError, UnsupportedEventTypeError
from eventsub_gate.helix.models import Subscription
from eventsub_gate.models import MessageHeader, MessageType, SubscriptionType


class WebhookDeliveryHeaders(BaseModel):
    """The ``twitch-eventsub-*`` headers of one delivery. Missing headers are empty."""

    model_config = ConfigDict(frozen=True)

    message_id: str = ""
    message_timestamp: str = ""
    message_signature: str = ""
    message_type: str = ""
    message_retry: str = ""
    subscription_type: str = ""
    subscription_version: str = ""

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> WebhookDeliveryHeaders:
        lowered = {k.lower(): v for k, v in headers.items()}
        return cls(
            message_id=lowered.get(MessageHeader.MESSAGE_ID.value, ""),
            message_timestamp=lowered.get(MessageHeader.MESSAGE_TIMESTAMP.value, ""),
            message_signature=lowered.get(MessageHeader.MESSAGE_SIGNATURE.value, ""),
            message_type=lowered.get(MessageHeader.MESSAGE_TYPE.value, ""),
            message_retry=lowered.get(MessageHeader.MESSAGE_RETRY.value, ""),
            subscription_type=lowered.get(MessageHeader.SUBSCRIPTION_TYPE.value, ""),
            subscription_version=lowered.get(MessageHeader.SUBSCRIPTION_VERSION.value, ""),
        )


# --- Event payloads ---


class StreamOnlineEvent(BaseModel):
    id: str
    broadcaster_user_id: str
    broadcaster_user_login: str
    broadcaster_user_name: str
    type: str
    started_at: str


class StreamOfflineEvent(BaseModel):
    broadcaster_user_id: str
    broadcaster_user_login: str
    broadcaster_user_name: str


class ChannelFollowEvent(BaseModel):
    user_id: str
    user_login: str
    user_name: str
    broadcaster_user_id: str
    broadcaster_user_login: str
    broadcaster_user_name: str
    followed_at: str


class ChannelRaidEvent(BaseModel):
    from_broadcaster_user_id: str
    from_broadcaster_user_login: str
    from_broadcaster_user_name: str
    to_broadcaster_user_id: str
    to_broadcaster_user_login: str
    to_broadcaster_user_name: str
    viewers: int


class GenericEvent(BaseModel):
    model_config = ConfigDict(extra="allow")


Event = StreamOnlineEvent | StreamOfflineEvent | ChannelFollowEvent | ChannelRaidEvent | GenericEvent

EVENT_MODELS: dict[str, type[BaseModel]] = {
    SubscriptionType.STREAM_ONLINE.value: StreamOnlineEvent,
    SubscriptionType.STREAM_OFFLINE.value: StreamOfflineEvent,
    SubscriptionType.CHANNEL_FOLLOW.value: ChannelFollowEvent,
    SubscriptionType.CHANNEL_RAID.value: ChannelRaidEvent,
}


# --- Bodies (closed union, discriminated by message type) ---


class _DeclaredSubscription(BaseModel):
    type: str


class DeclaredType(BaseModel):
    """Just enough of a body to read the subscription type it declares."""

    subscription: _DeclaredSubscription


class BaseWebhookBody(BaseModel):
    """Fields common to every delivery variant."""

    subscription: Subscription

    # keys a variant must carry / must not carry
    required_keys: ClassVar[tuple[str, ...]] = ()
    forbidden_keys: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def check_variant_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        for key in cls.required_keys:
            if key not in data:
                raise ValueError(f"{cls.__name__} requires '{key}'")
        for key in cls.forbidden_keys:
            if key in data:
                raise ValueError(f"{cls.__name__} must not carry '{key}'")
        return data


class VerificationBody(BaseWebhookBody):
    required_keys: ClassVar[tuple[str, ...]] = ("challenge",)
    forbidden_keys: ClassVar[tuple[str, ...]] = ("event",)

    challenge: str


class NotificationBody(BaseWebhookBody):
    required_keys: ClassVar[tuple[str, ...]] = ("event",)
    forbidden_keys: ClassVar[tuple[str, ...]] = ("challenge",)

    event: Event

    @model_validator(mode="before")
    @classmethod
    def narrow_event(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        subscription = data.get("subscription")
        event = data.get("event")
        if not isinstance(subscription, dict) or not isinstance(event, dict):
            return data
        model = EVENT_MODELS.get(subscription.get("type", ""), GenericEvent)
        return {**data, "event": model.model_validate(event)}


class RevocationBody(BaseWebhookBody):
    forbidden_keys: ClassVar[tuple[str, ...]] = ("challenge", "event")


WebhookBody = VerificationBody | NotificationBody | RevocationBody

BODY_MODELS: dict[str, type[BaseWebhookBody]] = {
    MessageType.WEBHOOK_CALLBACK_VERIFICATION.value: VerificationBody,
    MessageType.NOTIFICATION.value: NotificationBody,
    MessageType.REVOCATION.value: RevocationBody,
}


def parse_webhook_body(
    payload: Any, message_type: str, expected_type: str,
) -> WebhookBody:
    """Narrow a decoded JSON payload to its body variant.

    Only ``subscription.type`` is read before the type check against
    ``expected_type``; the rest of the subscription is validated afterwards.

    Raises UnsupportedEventTypeError on a type mismatch, MalformedDeliveryError
    for an unknown message type, and pydantic.ValidationError for a body that
    does not fit its variant.
    """
    declared = DeclaredType.model_validate(payload).subscription.type
    if declared != expected_type:
        raise UnsupportedEventTypeError(declared, expected_type)

    model = BODY_MODELS.get(message_type)
    if model is None:
        raise MalformedDeliveryError(f"Unrecognized message type: {message_type!r}")
    return model.model_validate(payload)  # type: ignore[return-value]


# --- Dispatch result ---


class DispatchState(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    ROUTED_CHALLENGE = "routed_challenge"
    ROUTED_NOTIFICATION = "routed_notification"
    ROUTED_REVOCATION = "routed_revocation"
    RESPONDED = "responded"
    REJECTED = "rejected"


@dataclass
class WebhookResponse:
    """Dispatcher outcome to return to Twitch."""

    status_code: int
    text: str | None = None
    state: DispatchState | None = None
