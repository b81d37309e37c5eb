"""Inbox: idempotent handling of inbound requests."""

from .guard import InboxGuard

__all__ = ["InboxGuard"]
