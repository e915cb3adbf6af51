"""Inbox watch service."""

from .service import DEFAULT_DEBOUNCE_SECONDS, InboxWatcher

__all__ = ["InboxWatcher", "DEFAULT_DEBOUNCE_SECONDS"]
