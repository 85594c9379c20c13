"""Tests for webhook header and body models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from eventsub_gate.errors import MalformedDeliveryError, UnsupportedEventTypeError
from eventsub_gate.helix.models import BroadcasterCondition, GenericCondition
from eventsub_gate.models import SubscriptionStatus
from eventsub_gate.webhook.models import (
    GenericEvent,
    NotificationBody,
    RevocationBody,
    StreamOnlineEvent,
    VerificationBody,
    WebhookDeliveryHeaders,
    parse_webhook_body,
)
from tests.conftest import (
    make_notification_payload,
    make_revocation_payload,
    make_signed_headers,
    make_verification_payload,
)


class TestDeliveryHeaders:
    def test_reads_all_fields(self) -> None:
        headers = make_signed_headers(b"{}", message_type="revocation", timestamp="T")
        delivery = WebhookDeliveryHeaders.from_headers(headers)
        assert delivery.message_type == "revocation"
        assert delivery.message_timestamp == "T"
        assert delivery.message_retry == "0"
        assert delivery.subscription_type == "stream.online"
        assert delivery.subscription_version == "1"

    def test_missing_headers_are_empty(self) -> None:
        delivery = WebhookDeliveryHeaders.from_headers({})
        assert delivery.message_id == ""
        assert delivery.message_signature == ""

    def test_is_immutable(self) -> None:
        delivery = WebhookDeliveryHeaders.from_headers({})
        with pytest.raises(ValidationError):
            delivery.message_id = "changed"  # type: ignore[misc]


class TestParseWebhookBody:
    def test_verification_body(self) -> None:
        body = parse_webhook_body(
            make_verification_payload("abc123"), "webhook_callback_verification", "stream.online",
        )
        assert isinstance(body, VerificationBody)
        assert body.challenge == "abc123"
        assert body.subscription.status == SubscriptionStatus.WEBHOOK_CALLBACK_VERIFICATION_PENDING

    def test_notification_event_is_typed(self) -> None:
        body = parse_webhook_body(make_notification_payload(), "notification", "stream.online")
        assert isinstance(body, NotificationBody)
        assert isinstance(body.event, StreamOnlineEvent)
        assert body.event.broadcaster_user_login == "cool_user"
        assert isinstance(body.subscription.condition, BroadcasterCondition)

    def test_revocation_body(self) -> None:
        body = parse_webhook_body(make_revocation_payload(), "revocation", "stream.online")
        assert isinstance(body, RevocationBody)
        assert body.subscription.status_value == "authorization_revoked"

    def test_type_mismatch_rejected_before_narrowing(self) -> None:
        payload = make_notification_payload(type="channel.follow")
        payload["event"] = {"not": "a follow event"}
        with pytest.raises(UnsupportedEventTypeError) as exc_info:
            parse_webhook_body(payload, "notification", "stream.online")
        assert exc_info.value.received == "channel.follow"

    def test_type_mismatch_needs_only_declared_type(self) -> None:
        payload = {"subscription": {"type": "channel.follow", "id": "x"}, "event": {}}
        with pytest.raises(UnsupportedEventTypeError):
            parse_webhook_body(payload, "notification", "stream.online")

    def test_partial_subscription_of_expected_type_is_invalid(self) -> None:
        payload = {"subscription": {"type": "stream.online", "id": "x"}, "event": {}}
        with pytest.raises(ValidationError):
            parse_webhook_body(payload, "notification", "stream.online")

    def test_unknown_message_type(self) -> None:
        with pytest.raises(MalformedDeliveryError):
            parse_webhook_body(make_notification_payload(), "telemetry", "stream.online")

    def test_missing_subscription(self) -> None:
        with pytest.raises(ValidationError):
            parse_webhook_body({"challenge": "x"}, "webhook_callback_verification", "stream.online")

    def test_notification_with_challenge_rejected(self) -> None:
        payload = {**make_notification_payload(), "challenge": "x"}
        with pytest.raises(ValidationError):
            parse_webhook_body(payload, "notification", "stream.online")

    def test_verification_without_challenge_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_webhook_body(
                make_revocation_payload(), "webhook_callback_verification", "stream.online",
            )

    def test_revocation_with_event_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_webhook_body(make_notification_payload(), "revocation", "stream.online")

    def test_event_shape_checked_against_type(self) -> None:
        payload = make_notification_payload()
        del payload["event"]["started_at"]
        with pytest.raises(ValidationError):
            parse_webhook_body(payload, "notification", "stream.online")

    def test_unmodelled_type_keeps_generic_event(self) -> None:
        payload = make_notification_payload(
            type="channel.cheer", condition={"broadcaster_user_id": "1"},
        )
        payload["event"] = {"bits": 100}
        body = parse_webhook_body(payload, "notification", "channel.cheer")
        assert isinstance(body, NotificationBody)
        assert isinstance(body.event, GenericEvent)

    def test_unknown_subscription_type_keeps_generic_condition(self) -> None:
        payload = make_revocation_payload(type="channel.hype_train.begin", condition={"x": "1"})
        body = parse_webhook_body(payload, "revocation", "channel.hype_train.begin")
        assert isinstance(body.subscription.condition, GenericCondition)
