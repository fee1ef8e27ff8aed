"""Recommendation dispatchers."""

from congress_rebalancer.notification.base import LoggingDispatcher, NotificationDispatcher
from congress_rebalancer.notification.email_dispatcher import EmailDispatcher

__all__ = ["NotificationDispatcher", "LoggingDispatcher", "EmailDispatcher"]
