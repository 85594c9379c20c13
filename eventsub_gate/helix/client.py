"""Helix EventSub subscription management over app-token authorized requests.

Every call is a single attempt: a non-success status raises FetchError and
nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from eventsub_gate.errors import FetchError
from eventsub_gate.helix.auth import http_client
from eventsub_gate.helix.models import (
    BroadcasterCondition,
    Subscription,
    SubscriptionPage,
    SubscriptionRequest,
    User,
    UsersResponse,
)
from eventsub_gate.models import TWITCH_HELIX_BASE, SubscriptionType

logger = logging.getLogger(__name__)


async def authorized_request(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    client_id: str,
    access_token: str,
    params: Any = None,
    json: dict[str, Any] | None = None,
) -> httpx.Response:
    """Send a request carrying the Client-Id and Bearer token headers."""
    headers = {
        "Client-Id": client_id,
        "Authorization": f"Bearer {access_token}",
    }
    return await http.request(method, url, params=params, json=json, headers=headers)


class SubscriptionClient:
    """EventSub subscription and user lookups for one app access token."""

    def __init__(
        self,
        client_id: str,
        access_token: str,
        http: httpx.AsyncClient | None = None,
        api_base: str = TWITCH_HELIX_BASE,
    ) -> None:
        self._client_id = client_id
        self._access_token = access_token
        self._http = http
        self._api_base = api_base.rstrip("/")

    async def _request(
        self,
        method: str,
        path: str,
        expected_status: int,
        params: Any = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        async with http_client(self._http) as http:
            resp = await authorized_request(
                http,
                method,
                f"{self._api_base}{path}",
                self._client_id,
                self._access_token,
                params=params,
                json=json,
            )
        if resp.status_code != expected_status:
            raise FetchError(resp.status_code, resp.reason_phrase)
        return resp

    async def list_users(
        self, ids: Sequence[str] = (), logins: Sequence[str] = (),
    ) -> list[User]:
        """GET /users with one ``id`` / ``login`` query parameter per value."""
        params = [("id", user_id) for user_id in ids] + [("login", login) for login in logins]
        resp = await self._request("GET", "/users", 200, params=params)
        return UsersResponse.model_validate(resp.json()).data

    async def create_subscription(self, request: SubscriptionRequest) -> Subscription:
        """POST /eventsub/subscriptions. Only 202 Accepted counts as success."""
        resp = await self._request(
            "POST",
            "/eventsub/subscriptions",
            202,
            json=request.model_dump(mode="json", exclude_none=True),
        )
        created = SubscriptionPage.model_validate(resp.json()).data[0]
        logger.info("Created %s subscription %s (%s)", created.type, created.id, created.status_value)
        return created

    async def subscribe(self, broadcaster_id: str, callback: str, secret: str) -> Subscription:
        """Subscribe ``callback`` to stream.online for one broadcaster."""
        request = SubscriptionRequest.webhook(
            SubscriptionType.STREAM_ONLINE.value,
            BroadcasterCondition(broadcaster_user_id=broadcaster_id),
            callback,
            secret,
        )
        return await self.create_subscription(request)

    async def list_subscriptions(
        self,
        status: str | None = None,
        type: str | None = None,
        user_id: str | None = None,
        after: str | None = None,
    ) -> SubscriptionPage:
        """GET one page of /eventsub/subscriptions.

        Helix accepts at most one of ``status``, ``type`` and ``user_id``.
        """
        filters = {"status": status, "type": type, "user_id": user_id}
        given = {key: value for key, value in filters.items() if value is not None}
        if len(given) > 1:
            raise ValueError(f"Only one subscription filter may be used, got {sorted(given)}")
        params = dict(given)
        if after is not None:
            params["after"] = after
        resp = await self._request("GET", "/eventsub/subscriptions", 200, params=params)
        return SubscriptionPage.model_validate(resp.json())

    async def delete_subscription(self, subscription_id: str) -> None:
        """DELETE /eventsub/subscriptions?id=. Only 204 No Content counts as success."""
        await self._request(
            "DELETE", "/eventsub/subscriptions", 204, params={"id": subscription_id},
        )
        logger.info("Deleted subscription %s", subscription_id)


async def collect_subscriptions(
    client: SubscriptionClient,
    status: str | None = None,
    type: str | None = None,
    user_id: str | None = None,
) -> list[Subscription]:
    """Follow pagination cursors until exhausted and return every page's data in order.

    A failure on any page propagates; no partial listing is returned.
    """
    subscriptions: list[Subscription] = []
    cursor: str | None = None
    while True:
        page = await client.list_subscriptions(
            status=status, type=type, user_id=user_id, after=cursor,
        )
        subscriptions.extend(page.data)
        cursor = page.cursor
        if not cursor:
            return subscriptions
