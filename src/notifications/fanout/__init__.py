"""Notification fan-out registry factory.

The host application builds one registry at start-up and installs it with
set_registry(); get_registry() falls back to a default-configured registry.
"""

from notifications.fanout.connection import CloseReason, Connection, ConnectionState, DeliveryError, QueueConnection
from notifications.fanout.registry import ADMIN, ALL_USERS, SubscriptionRegistry

__all__ = [
    "ADMIN",
    "ALL_USERS",
    "CloseReason",
    "Connection",
    "ConnectionState",
    "DeliveryError",
    "QueueConnection",
    "SubscriptionRegistry",
    "get_registry",
    "reset_registry",
    "set_registry",
]

_current_registry: SubscriptionRegistry | None = None


def get_registry() -> SubscriptionRegistry:
    global _current_registry
    if _current_registry is None:
        _current_registry = SubscriptionRegistry()
    return _current_registry


def set_registry(registry: SubscriptionRegistry) -> None:
    global _current_registry
    _current_registry = registry


def reset_registry() -> None:
    """Close every live connection and forget the registry (useful for tests)."""
    global _current_registry
    if _current_registry is not None:
        _current_registry.close_all()
    _current_registry = None
