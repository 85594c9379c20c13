"""Pydantic models for Helix EventSub subscriptions, users and app access tokens."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from eventsub_gate.models import SubscriptionStatus, SubscriptionType

# --- Conditions (shape depends on subscription type) ---


class BroadcasterCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    broadcaster_user_id: str


class ModeratorCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    broadcaster_user_id: str
    moderator_user_id: str


class RaidCondition(BaseModel):
    """channel.raid takes exactly one side of the raid."""

    model_config = ConfigDict(frozen=True)

    from_broadcaster_user_id: str | None = None
    to_broadcaster_user_id: str | None = None

    @model_validator(mode="after")
    def check_one_side(self) -> RaidCondition:
        # Twitch reports the unused side as an empty string
        if bool(self.from_broadcaster_user_id) == bool(self.to_broadcaster_user_id):
            raise ValueError(
                "channel.raid condition needs exactly one of "
                "from_broadcaster_user_id or to_broadcaster_user_id"
            )
        return self


class UserCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str


class GenericCondition(BaseModel):
    """Condition of a subscription type this package has no model for."""

    model_config = ConfigDict(frozen=True, extra="allow")


Condition = (
    BroadcasterCondition | ModeratorCondition | RaidCondition | UserCondition | GenericCondition
)

CONDITION_MODELS: dict[str, type[BaseModel]] = {
    SubscriptionType.STREAM_ONLINE.value: BroadcasterCondition,
    SubscriptionType.STREAM_OFFLINE.value: BroadcasterCondition,
    SubscriptionType.CHANNEL_UPDATE.value: BroadcasterCondition,
    SubscriptionType.CHANNEL_FOLLOW.value: ModeratorCondition,
    SubscriptionType.CHANNEL_RAID.value: RaidCondition,
    SubscriptionType.CHANNEL_SUBSCRIBE.value: BroadcasterCondition,
    SubscriptionType.CHANNEL_CHEER.value: BroadcasterCondition,
    SubscriptionType.USER_UPDATE.value: UserCondition,
}

SUBSCRIPTION_VERSIONS: dict[str, str] = {
    SubscriptionType.STREAM_ONLINE.value: "1",
    SubscriptionType.STREAM_OFFLINE.value: "1",
    SubscriptionType.CHANNEL_UPDATE.value: "2",
    SubscriptionType.CHANNEL_FOLLOW.value: "2",
    SubscriptionType.CHANNEL_RAID.value: "1",
    SubscriptionType.CHANNEL_SUBSCRIBE.value: "1",
    SubscriptionType.CHANNEL_CHEER.value: "1",
    SubscriptionType.USER_UPDATE.value: "1",
}


def narrow_condition(data: Any, *, strict: bool = True) -> Any:
    """Validate a raw ``condition`` dict against the model registered for ``type``.

    With ``strict=False`` a condition that does not fit its registered model is
    kept as a GenericCondition instead of failing validation.
    """
    if not isinstance(data, dict):
        return data
    condition = data.get("condition")
    if not isinstance(condition, dict):
        return data
    model = CONDITION_MODELS.get(data.get("type", ""), GenericCondition)
    try:
        narrowed = model.model_validate(condition)
    except ValidationError:
        if strict:
            raise
        narrowed = GenericCondition.model_validate(condition)
    return {**data, "condition": narrowed}


# --- Transports ---


class Transport(BaseModel):
    """Transport as reported by Twitch. The webhook secret is never echoed back."""

    method: str
    callback: str | None = None
    session_id: str | None = None
    conduit_id: str | None = None
    connected_at: str | None = None
    disconnected_at: str | None = None


class WebhookTransportRequest(BaseModel):
    method: Literal["webhook"] = "webhook"
    callback: str
    secret: str = Field(min_length=10, max_length=100)


# --- Subscriptions ---


class Subscription(BaseModel):
    id: str
    type: str
    version: str
    status: SubscriptionStatus | str = Field(union_mode="left_to_right")
    cost: int = 0
    condition: Condition
    transport: Transport | None = None
    created_at: str

    @model_validator(mode="before")
    @classmethod
    def narrow_listed_condition(cls, data: Any) -> Any:
        return narrow_condition(data, strict=False)

    @property
    def status_value(self) -> str:
        if isinstance(self.status, SubscriptionStatus):
            return self.status.value
        return self.status


class SubscriptionRequest(BaseModel):
    """Body of ``POST /eventsub/subscriptions``.

    The condition must be the variant registered for ``type``.
    """

    type: str
    version: str
    condition: Condition
    transport: WebhookTransportRequest

    @model_validator(mode="before")
    @classmethod
    def narrow_requested_condition(cls, data: Any) -> Any:
        return narrow_condition(data)

    @model_validator(mode="after")
    def condition_matches_type(self) -> SubscriptionRequest:
        expected = CONDITION_MODELS.get(self.type)
        if expected is None:
            raise ValueError(f"Unsupported subscription type: {self.type}")
        if not isinstance(self.condition, expected):
            raise ValueError(
                f"{self.type} requires a {expected.__name__}, "
                f"got {type(self.condition).__name__}"
            )
        return self

    @classmethod
    def webhook(
        cls,
        subscription_type: str,
        condition: BaseModel,
        callback: str,
        secret: str,
    ) -> SubscriptionRequest:
        """Build a webhook-transport request with the version registered for the type."""
        return cls(
            type=subscription_type,
            version=SUBSCRIPTION_VERSIONS.get(subscription_type, "1"),
            condition=condition,  # type: ignore[arg-type]
            transport=WebhookTransportRequest(callback=callback, secret=secret),
        )


class Pagination(BaseModel):
    cursor: str | None = None


class SubscriptionPage(BaseModel):
    data: list[Subscription]
    total: int = 0
    total_cost: int = 0
    max_total_cost: int = 0
    pagination: Pagination = Field(default_factory=Pagination)

    @property
    def cursor(self) -> str | None:
        return self.pagination.cursor or None


# --- Users ---


class User(BaseModel):
    id: str
    login: str
    display_name: str
    type: str = ""
    broadcaster_type: str = ""
    description: str = ""
    profile_image_url: str = ""
    offline_image_url: str = ""
    email: str | None = None
    created_at: str | None = None


class UsersResponse(BaseModel):
    data: list[User]


# --- OAuth ---


class OAuthToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_in: int
    token_type: str
