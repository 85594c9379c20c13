"""Twitch EventSub webhook receiver and subscription management client."""
