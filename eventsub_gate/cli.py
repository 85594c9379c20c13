"""Click CLI for managing stream.online EventSub webhook subscriptions."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click
import httpx
from pydantic import ValidationError

from eventsub_gate.errors import FetchError
from eventsub_gate.helix.auth import authorize
from eventsub_gate.helix.client import SubscriptionClient, collect_subscriptions
from eventsub_gate.helix.models import BroadcasterCondition, Subscription
from eventsub_gate.models import (
    TWITCH_HELIX_BASE,
    TWITCH_ID_BASE,
    SubscriptionType,
    TransportMethod,
)

T = TypeVar("T")


def _non_empty(value: str) -> str:
    if not value.strip():
        raise click.BadParameter("must not be empty")
    return value.strip()


@click.group()
@click.option(
    "--client-id", envvar="TWITCH_CLIENT_ID", default=None,
    help="Twitch application client ID. Prompted for when absent.",
)
@click.option(
    "--client-secret", envvar="TWITCH_CLIENT_SECRET", default=None,
    help="Twitch application client secret. Prompted for when absent.",
)
@click.option("--api-base", default=TWITCH_HELIX_BASE, show_default=True, help="Helix API base URL.")
@click.option("--id-base", default=TWITCH_ID_BASE, show_default=True, help="Twitch OAuth base URL.")
@click.option("-v", "--verbose", is_flag=True, help="Log HTTP activity.")
@click.pass_context
def cli(
    ctx: click.Context,
    client_id: str | None,
    client_secret: str | None,
    api_base: str,
    id_base: str,
    verbose: bool,
) -> None:
    """Manage Twitch EventSub webhook subscriptions."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("transport", None)
    ctx.obj.update(
        client_id=client_id,
        client_secret=client_secret,
        api_base=api_base,
        id_base=id_base,
    )


def _ensure_credentials(ctx: click.Context) -> None:
    """Prompt for whichever of client ID and secret was not given."""
    if not ctx.obj["client_id"]:
        ctx.obj["client_id"] = click.prompt("Client ID", value_proc=_non_empty)
    if not ctx.obj["client_secret"]:
        ctx.obj["client_secret"] = click.prompt(
            "Client Secret", hide_input=True, value_proc=_non_empty,
        )


def _run_session(
    ctx: click.Context, work: Callable[[SubscriptionClient], Awaitable[T]],
) -> T:
    """Run ``work`` inside one token session; API failures end the command."""
    obj = ctx.obj

    async def main() -> T:
        async with httpx.AsyncClient(transport=obj["transport"], timeout=30.0) as http:

            async def unit(access_token: str) -> T:
                client = SubscriptionClient(
                    obj["client_id"], access_token, http=http, api_base=obj["api_base"],
                )
                return await work(client)

            return await authorize(
                obj["client_id"], obj["client_secret"], unit, http=http, id_base=obj["id_base"],
            )

    try:
        return asyncio.run(main())
    except FetchError as exc:
        raise click.ClickException(str(exc)) from exc
    except httpx.HTTPError as exc:
        raise click.ClickException(f"Request to Twitch failed: {exc!r}") from exc
    except ValidationError as exc:
        raise click.ClickException(
            f"Unexpected response from Twitch ({exc.error_count()} invalid fields)"
        ) from exc


def _confirmed(yes: bool) -> bool:
    if yes or click.confirm("Confirm?"):
        return True
    click.echo("Cancelled")
    return False


@cli.command()
@click.argument("channel")
@click.argument("callback")
@click.option(
    "--webhook-secret", envvar="TWITCH_SECRET", default=None,
    help="Secret Twitch signs deliveries with (10-100 chars). Defaults to the client secret.",
)
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def subscribe(
    ctx: click.Context, channel: str, callback: str, webhook_secret: str | None, yes: bool,
) -> None:
    """Subscribe CALLBACK to stream.online events of CHANNEL."""
    _ensure_credentials(ctx)
    secret = webhook_secret or ctx.obj["client_secret"]
    if not 10 <= len(secret) <= 100:
        raise click.BadParameter("must be 10 to 100 characters", param_hint="--webhook-secret")
    if not _confirmed(yes):
        return

    async def work(client: SubscriptionClient) -> tuple[str, Subscription] | None:
        users = await client.list_users(logins=[channel])
        if not users:
            return None
        subscription = await client.subscribe(users[0].id, callback, secret)
        return users[0].id, subscription

    outcome = _run_session(ctx, work)
    if outcome is None:
        click.echo(f"Unable to find user: {channel}")
        return
    user_id, subscription = outcome
    click.echo(
        f'Subscribed callback "{callback}" to user "{channel}" (ID: {user_id}), '
        f"status: {subscription.status_value}"
    )


def _stream_online_webhooks(subscriptions: list[Subscription]) -> list[Subscription]:
    return [
        s for s in subscriptions
        if s.type == SubscriptionType.STREAM_ONLINE
        and s.transport is not None
        and s.transport.method == TransportMethod.WEBHOOK
        and isinstance(s.condition, BroadcasterCondition)
    ]


@cli.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompts.")
@click.pass_context
def unsubscribe(ctx: click.Context, yes: bool) -> None:
    """Pick a stream.online webhook subscription and delete it."""
    _ensure_credentials(ctx)
    if not _confirmed(yes):
        return

    # Prompts happen between two short token sessions, never while a token is live
    subscriptions = _run_session(ctx, collect_subscriptions)
    if not subscriptions:
        click.echo("No subscriptions found")
        return
    candidates = _stream_online_webhooks(subscriptions)
    if not candidates:
        click.echo("No stream.online webhook subscriptions found")
        return

    for number, s in enumerate(candidates, start=1):
        click.echo(
            f"{number}. [Status: {s.status_value}] "
            f"{s.condition.broadcaster_user_id} (Callback: {s.transport.callback})"  # type: ignore[union-attr]
        )
    choice = click.prompt("Subscription (by number)", type=click.IntRange(1, len(candidates)))
    chosen = candidates[choice - 1]
    if not _confirmed(yes):
        return

    _run_session(ctx, lambda client: client.delete_subscription(chosen.id))
    click.echo(
        f'Deleted subscription "{chosen.id}" for user '
        f'"{chosen.condition.broadcaster_user_id}"'  # type: ignore[union-attr]
    )


@cli.command("list")
@click.option("--status", default=None, help="Only subscriptions with this status.")
@click.option("--type", "type_", default=None, help="Only subscriptions of this type.")
@click.option("--user-id", default=None, help="Only subscriptions referencing this user.")
@click.pass_context
def list_subscriptions(
    ctx: click.Context, status: str | None, type_: str | None, user_id: str | None,
) -> None:
    """List all subscriptions as JSON, following every page."""
    if sum(value is not None for value in (status, type_, user_id)) > 1:
        raise click.UsageError("Use at most one of --status, --type and --user-id")
    _ensure_credentials(ctx)

    subscriptions = _run_session(
        ctx,
        lambda client: collect_subscriptions(
            client, status=status, type=type_, user_id=user_id,
        ),
    )
    click.echo(json.dumps([s.model_dump(mode="json") for s in subscriptions], indent=2))
