"""EventSub delivery dispatcher.

One call per inbound request, no state kept between calls:

    UNVERIFIED -> VERIFIED -> ROUTED_{CHALLENGE,NOTIFICATION,REVOCATION} -> RESPONDED

Rejections end in REJECTED with 401 (bad signature), 403 (subscription type
not handled here) or 400 (anything unparseable or unrecognized). Error detail
goes to the log, never to the caller.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from eventsub_gate.errors import (
    MalformedDeliveryError,
    SignatureInvalidError,
    UnsupportedEventTypeError,
)
from eventsub_gate.models import AuditEventType, RiskLevel, SubscriptionType
from eventsub_gate.webhook.forwarder import LoggingForwarder, NotificationForwarder
from eventsub_gate.webhook.models import (
    DispatchState,
    NotificationBody,
    RevocationBody,
    VerificationBody,
    WebhookDeliveryHeaders,
    WebhookResponse,
    parse_webhook_body,
)
from eventsub_gate.webhook.signature import require_valid_signature
from eventsub_gate.webhook.staleness import StalenessCheck

if TYPE_CHECKING:
    from eventsub_gate.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Verifies and routes a single EventSub webhook delivery."""

    def __init__(
        self,
        secret: str,
        expected_type: str = SubscriptionType.STREAM_ONLINE.value,
        staleness: StalenessCheck | None = None,
        forwarder: NotificationForwarder | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._secret = secret
        self._expected_type = expected_type
        self._staleness = staleness or StalenessCheck()
        self._forwarder = forwarder or LoggingForwarder()
        self._audit = audit_logger

    async def dispatch(
        self,
        headers: Mapping[str, str],
        body: bytes,
        source_ip: str | None = None,
    ) -> WebhookResponse:
        """Handle one delivery. ``body`` is the raw request bytes, read once by the caller."""
        delivery = WebhookDeliveryHeaders.from_headers(headers)
        self._transition(delivery, DispatchState.UNVERIFIED)

        try:
            require_valid_signature(self._secret, delivery, body)
        except SignatureInvalidError as exc:
            logger.warning("Rejected delivery: %s", exc)
            self._log(
                AuditEventType.SIGNATURE_INVALID, delivery, source_ip,
                result="rejected", risk_level=RiskLevel.HIGH,
            )
            return self._reject(delivery, 401)
        self._transition(delivery, DispatchState.VERIFIED)

        self._check_staleness(delivery, source_ip)

        try:
            response = await self._route(delivery, body, source_ip)
        except UnsupportedEventTypeError as exc:
            logger.info("Ignoring delivery %s: %s", delivery.message_id, exc)
            self._log(
                AuditEventType.UNSUPPORTED_EVENT_TYPE, delivery, source_ip,
                result="rejected", risk_level=RiskLevel.LOW,
                details={"subscription_type": exc.received},
            )
            return self._reject(delivery, 403)
        except (MalformedDeliveryError, ValueError) as exc:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            logger.warning("Malformed delivery %s: %s", delivery.message_id, exc)
            self._log(
                AuditEventType.MALFORMED_DELIVERY, delivery, source_ip,
                result="rejected", risk_level=RiskLevel.MEDIUM,
                details={"message_type": delivery.message_type},
            )
            return self._reject(delivery, 400)
        except Exception:
            logger.exception("Unhandled error routing delivery %s", delivery.message_id)
            return self._reject(delivery, 400)

        self._transition(delivery, DispatchState.RESPONDED)
        return response

    async def _route(
        self,
        delivery: WebhookDeliveryHeaders,
        body: bytes,
        source_ip: str | None,
    ) -> WebhookResponse:
        payload = json.loads(body)
        parsed = parse_webhook_body(payload, delivery.message_type, self._expected_type)

        if isinstance(parsed, VerificationBody):
            state = self._transition(delivery, DispatchState.ROUTED_CHALLENGE)
            self._log(
                AuditEventType.CHALLENGE, delivery, source_ip,
                result="accepted", risk_level=RiskLevel.INFO,
                details={"subscription_id": parsed.subscription.id},
            )
            return WebhookResponse(status_code=200, text=parsed.challenge, state=state)

        if isinstance(parsed, NotificationBody):
            state = self._transition(delivery, DispatchState.ROUTED_NOTIFICATION)
            self._log(
                AuditEventType.NOTIFICATION, delivery, source_ip,
                result="accepted", risk_level=RiskLevel.INFO,
                details={"subscription_id": parsed.subscription.id},
            )
            try:
                await self._forwarder.forward_notification(parsed, delivery)
            except Exception:
                logger.exception("Forwarder failed for notification %s", delivery.message_id)
            return WebhookResponse(status_code=204, state=state)

        if isinstance(parsed, RevocationBody):
            state = self._transition(delivery, DispatchState.ROUTED_REVOCATION)
            self._log(
                AuditEventType.REVOCATION, delivery, source_ip,
                result="accepted", risk_level=RiskLevel.MEDIUM,
                details={
                    "subscription_id": parsed.subscription.id,
                    "status": parsed.subscription.status_value,
                },
            )
            try:
                await self._forwarder.handle_revocation(parsed, delivery)
            except Exception:
                logger.exception("Forwarder failed for revocation %s", delivery.message_id)
            return WebhookResponse(status_code=204, state=state)

        raise MalformedDeliveryError(f"Unrecognized message type: {delivery.message_type!r}")

    def _check_staleness(
        self, delivery: WebhookDeliveryHeaders, source_ip: str | None,
    ) -> None:
        """Warn about old deliveries. Advisory only: retries arrive late by design."""
        age = self._staleness.age_ms(delivery.message_timestamp)
        if age is None:
            logger.warning(
                "Delivery %s has an unparseable timestamp %r",
                delivery.message_id, delivery.message_timestamp,
            )
            return
        if age > self._staleness.threshold_ms:
            logger.warning(
                "Delivery %s is %.0f ms old (threshold %d ms)",
                delivery.message_id, age, self._staleness.threshold_ms,
            )
            self._log(
                AuditEventType.STALE_DELIVERY, delivery, source_ip,
                result="warning", risk_level=RiskLevel.LOW,
                details={"age_ms": int(age), "retry": delivery.message_retry},
            )

    def _reject(self, delivery: WebhookDeliveryHeaders, status_code: int) -> WebhookResponse:
        state = self._transition(delivery, DispatchState.REJECTED)
        return WebhookResponse(status_code=status_code, state=state)

    @staticmethod
    def _transition(delivery: WebhookDeliveryHeaders, state: DispatchState) -> DispatchState:
        logger.debug("Delivery %s -> %s", delivery.message_id, state.value)
        return state

    def _log(
        self,
        event_type: AuditEventType,
        delivery: WebhookDeliveryHeaders,
        source_ip: str | None,
        *,
        result: str,
        risk_level: RiskLevel,
        details: dict[str, object] | None = None,
    ) -> None:
        if not self._audit:
            return
        # Audit is advisory: a failed write never changes the response
        try:
            self._audit.log_delivery(
                event_type, delivery,
                source_ip=source_ip, result=result, risk_level=risk_level, details=details,
            )
        except Exception:
            logger.exception(
                "Audit write failed for delivery %s (%s)", delivery.message_id, event_type.value,
            )
