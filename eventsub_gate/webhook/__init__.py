"""Inbound EventSub webhook verification and dispatch."""
