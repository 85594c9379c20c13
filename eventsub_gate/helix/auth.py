"""App access tokens: client-credentials grant with guaranteed revocation.

``TokenSession.run`` acquires a token, hands it to one unit of work and
revokes it on every exit path. If the work fails, its exception is the one
the caller sees; a revocation failure on that path is logged and attached as
a note. If the work succeeds but revocation fails, TokenRevocationError is
raised, since the token would otherwise stay live.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

import httpx

from eventsub_gate.errors import AuthError, TokenRevocationError
from eventsub_gate.helix.models import OAuthToken
from eventsub_gate.models import TWITCH_ID_BASE

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TIMEOUT = 30.0


@asynccontextmanager
async def http_client(http: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield ``http`` unchanged, or a short-lived client closed on exit."""
    if http is not None:
        yield http
        return
    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        yield client


class TokenSession:
    """Single-use acquire / use / revoke scope for one app access token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http: httpx.AsyncClient | None = None,
        id_base: str = TWITCH_ID_BASE,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http
        self._id_base = id_base.rstrip("/")
        self._used = False

    async def acquire(self, http: httpx.AsyncClient) -> OAuthToken:
        resp = await http.post(
            f"{self._id_base}/oauth2/token",
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "client_credentials",
            },
        )
        if resp.status_code != 200:
            raise AuthError(resp.status_code, resp.reason_phrase)
        return OAuthToken.model_validate(resp.json())

    async def revoke(self, http: httpx.AsyncClient, token: OAuthToken) -> None:
        resp = await http.post(
            f"{self._id_base}/oauth2/revoke",
            data={"client_id": self._client_id, "token": token.access_token},
        )
        if resp.status_code != 200:
            raise TokenRevocationError(resp.status_code, resp.reason_phrase)

    async def run(self, fn: Callable[[str], Awaitable[T]]) -> T:
        """Run ``fn(access_token)`` inside the session and return its result."""
        if self._used:
            raise RuntimeError("TokenSession is single-use; create a new one per operation")
        self._used = True

        async with http_client(self._http) as http:
            token = await self.acquire(http)
            logger.debug("Acquired app access token (expires in %ss)", token.expires_in)
            try:
                result = await fn(token.access_token)
            except BaseException as exc:
                try:
                    await self.revoke(http, token)
                except Exception as revoke_exc:
                    logger.error("Token revocation failed after error: %s", revoke_exc)
                    exc.add_note(f"token revocation also failed: {revoke_exc}")
                raise
            await self.revoke(http, token)
            logger.debug("Revoked app access token")
            return result


async def authorize(
    client_id: str,
    client_secret: str,
    fn: Callable[[str], Awaitable[T]],
    http: httpx.AsyncClient | None = None,
    id_base: str = TWITCH_ID_BASE,
) -> T:
    """Run ``fn`` with a fresh app access token that is revoked afterwards."""
    session = TokenSession(client_id, client_secret, http=http, id_base=id_base)
    return await session.run(fn)
