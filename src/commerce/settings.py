"""Runtime settings for the commerce service.

Values come from environment variables, read once when first requested.
Tests swap them through ``set_settings()`` / ``reset_settings()``.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    tax_rate: float = 0.085
    free_shipping_threshold: float = 50.00
    flat_shipping_fee: float = 5.99
    currency: str = "USD"
    attention_threshold_hours: int = 24
    order_number_attempts: int = 10
    notification_idle_timeout_seconds: int = 30 * 60
    notification_queue_size: int = 100
    notification_heartbeat_seconds: int = 15

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            tax_rate=float(os.environ.get("COMMERCE_TAX_RATE", cls.tax_rate)),
            free_shipping_threshold=float(
                os.environ.get("COMMERCE_FREE_SHIPPING_THRESHOLD", cls.free_shipping_threshold)
            ),
            flat_shipping_fee=float(os.environ.get("COMMERCE_FLAT_SHIPPING_FEE", cls.flat_shipping_fee)),
            currency=os.environ.get("COMMERCE_CURRENCY", cls.currency),
            attention_threshold_hours=int(
                os.environ.get("COMMERCE_ATTENTION_THRESHOLD_HOURS", cls.attention_threshold_hours)
            ),
            order_number_attempts=int(os.environ.get("COMMERCE_ORDER_NUMBER_ATTEMPTS", cls.order_number_attempts)),
            notification_idle_timeout_seconds=int(
                os.environ.get("NOTIFICATIONS_IDLE_TIMEOUT_SECONDS", cls.notification_idle_timeout_seconds)
            ),
            notification_queue_size=int(os.environ.get("NOTIFICATIONS_QUEUE_SIZE", cls.notification_queue_size)),
            notification_heartbeat_seconds=int(
                os.environ.get("NOTIFICATIONS_HEARTBEAT_SECONDS", cls.notification_heartbeat_seconds)
            ),
        )

    def shipping_for(self, subtotal: float) -> float:
        """Flat fee below the free-shipping threshold, free at or above it."""
        return 0.0 if subtotal >= self.free_shipping_threshold else self.flat_shipping_fee

    def tax_for(self, subtotal: float) -> float:
        return round(subtotal * self.tax_rate, 2)


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = Settings.from_env()
    return _current_settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    global _current_settings
    _current_settings = None
