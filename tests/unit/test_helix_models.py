"""Tests for Helix subscription models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from eventsub_gate.helix.models import (
    BroadcasterCondition,
    GenericCondition,
    ModeratorCondition,
    RaidCondition,
    Subscription,
    SubscriptionPage,
    SubscriptionRequest,
    UserCondition,
)
from eventsub_gate.models import SubscriptionStatus
from tests.conftest import SECRET, make_subscription

CALLBACK = "https://example.com/webhook"


class TestConditions:
    def test_raid_needs_exactly_one_side(self) -> None:
        assert RaidCondition(to_broadcaster_user_id="1").to_broadcaster_user_id == "1"
        with pytest.raises(ValidationError):
            RaidCondition()
        with pytest.raises(ValidationError):
            RaidCondition(from_broadcaster_user_id="1", to_broadcaster_user_id="2")

    def test_raid_empty_side_counts_as_unset(self) -> None:
        condition = RaidCondition(from_broadcaster_user_id="", to_broadcaster_user_id="2")
        assert condition.to_broadcaster_user_id == "2"

    def test_conditions_are_immutable(self) -> None:
        condition = BroadcasterCondition(broadcaster_user_id="1")
        with pytest.raises(ValidationError):
            condition.broadcaster_user_id = "2"  # type: ignore[misc]


class TestSubscriptionRequest:
    def test_webhook_uses_registered_version(self) -> None:
        request = SubscriptionRequest.webhook(
            "channel.follow",
            ModeratorCondition(broadcaster_user_id="1", moderator_user_id="2"),
            CALLBACK,
            SECRET,
        )
        assert request.version == "2"
        assert request.transport.method == "webhook"

    def test_condition_must_match_type(self) -> None:
        with pytest.raises(ValidationError):
            SubscriptionRequest.webhook(
                "stream.online", UserCondition(user_id="1"), CALLBACK, SECRET,
            )

    def test_raw_condition_narrowed_by_type(self) -> None:
        request = SubscriptionRequest.model_validate({
            "type": "user.update",
            "version": "1",
            "condition": {"user_id": "42"},
            "transport": {"method": "webhook", "callback": CALLBACK, "secret": SECRET},
        })
        assert isinstance(request.condition, UserCondition)

    def test_raw_condition_missing_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SubscriptionRequest.model_validate({
                "type": "channel.follow",
                "version": "2",
                "condition": {"broadcaster_user_id": "1"},
                "transport": {"method": "webhook", "callback": CALLBACK, "secret": SECRET},
            })

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SubscriptionRequest.webhook(
                "channel.hype_train.begin", GenericCondition(), CALLBACK, SECRET,
            )

    @pytest.mark.parametrize("secret", ["short", "x" * 101])
    def test_secret_length_bounds(self, secret: str) -> None:
        with pytest.raises(ValidationError):
            SubscriptionRequest.webhook(
                "stream.online", BroadcasterCondition(broadcaster_user_id="1"), CALLBACK, secret,
            )

    def test_dump_omits_unset_fields(self) -> None:
        request = SubscriptionRequest.webhook(
            "channel.raid", RaidCondition(to_broadcaster_user_id="7"), CALLBACK, SECRET,
        )
        dumped = request.model_dump(mode="json", exclude_none=True)
        assert dumped["condition"] == {"to_broadcaster_user_id": "7"}


class TestSubscription:
    def test_known_status_is_enum(self) -> None:
        subscription = Subscription.model_validate(make_subscription())
        assert subscription.status == SubscriptionStatus.ENABLED
        assert subscription.status_value == "enabled"

    def test_unknown_status_kept(self) -> None:
        subscription = Subscription.model_validate(make_subscription(status="brand_new"))
        assert subscription.status_value == "brand_new"

    def test_listed_condition_tolerates_unexpected_shape(self) -> None:
        subscription = Subscription.model_validate(
            make_subscription(condition={"broadcaster_user_id": "1", "extra": "x"}),
        )
        assert isinstance(subscription.condition, BroadcasterCondition)

        odd = Subscription.model_validate(
            make_subscription(type="channel.follow", condition={"broadcaster_user_id": "1"}),
        )
        assert isinstance(odd.condition, GenericCondition)

    def test_page_cursor(self) -> None:
        page = SubscriptionPage.model_validate({
            "data": [make_subscription()],
            "pagination": {"cursor": "abc"},
        })
        assert page.cursor == "abc"
        assert SubscriptionPage.model_validate({"data": []}).cursor is None
