"""Hand-off point for verified deliveries.

Storage and business logic live behind ``NotificationForwarder``; deduplication
should key on ``headers.message_id`` since Twitch may deliver more than once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from eventsub_gate.webhook.models import (
        NotificationBody,
        RevocationBody,
        WebhookDeliveryHeaders,
    )

logger = logging.getLogger(__name__)


class NotificationForwarder(Protocol):
    async def forward_notification(
        self, body: NotificationBody, headers: WebhookDeliveryHeaders,
    ) -> None: ...

    async def handle_revocation(
        self, body: RevocationBody, headers: WebhookDeliveryHeaders,
    ) -> None: ...


class LoggingForwarder:
    """Default forwarder: records the delivery in the application log only."""

    async def forward_notification(
        self, body: NotificationBody, headers: WebhookDeliveryHeaders,
    ) -> None:
        logger.info(
            "EventSub notification %s for subscription %s (%s, retry=%s)",
            headers.message_id,
            body.subscription.id,
            body.subscription.type,
            headers.message_retry or "0",
        )

    async def handle_revocation(
        self, body: RevocationBody, headers: WebhookDeliveryHeaders,
    ) -> None:
        logger.warning(
            "EventSub subscription %s (%s) revoked: %s",
            body.subscription.id,
            body.subscription.type,
            body.subscription.status_value,
        )
