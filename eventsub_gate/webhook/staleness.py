"""Advisory message-age check for EventSub deliveries.

Twitch retries failed deliveries, so old timestamps are expected under retry
and never cause a rejection; callers only log a warning.
"""

from __future__ import annotations

from datetime import UTC, datetime

from eventsub_gate.models import DEFAULT_AGE_WARNING_MS


class StalenessCheck:
    """Compares ``twitch-eventsub-message-timestamp`` with the local clock."""

    def __init__(self, threshold_ms: int = DEFAULT_AGE_WARNING_MS) -> None:
        self._threshold_ms = threshold_ms

    @property
    def threshold_ms(self) -> int:
        return self._threshold_ms

    def age_ms(self, timestamp: str, now: datetime | None = None) -> float | None:
        """Return the message age in milliseconds, or None if the timestamp is unparseable.

        RFC 3339 timestamps with nanosecond fractions are truncated to microseconds.
        """
        try:
            sent_at = datetime.fromisoformat(timestamp)
        except ValueError:
            return None
        if sent_at.tzinfo is None:
            sent_at = sent_at.replace(tzinfo=UTC)
        now = now or datetime.now(UTC)
        return (now - sent_at).total_seconds() * 1000

    def is_stale(self, timestamp: str, now: datetime | None = None) -> bool:
        age = self.age_ms(timestamp, now)
        return age is not None and age > self._threshold_ms
