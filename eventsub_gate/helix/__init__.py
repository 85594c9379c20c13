"""Helix REST client: app access tokens and EventSub subscriptions."""
