"""Fake connection — records delivered messages for test assertions."""

import time

from notifications.fanout.connection import Connection, DeliveryError


class FakeConnection(Connection):
    def __init__(self, user_id=None, admin=False, clock=time.monotonic):
        super().__init__(user_id=user_id, admin=admin, clock=clock)
        self.received: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Subscriber went away"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Subscriber went away"):
        """Make subsequent sends succeed or fail."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, message: dict) -> None:
        if not self.should_succeed:
            raise DeliveryError(self.failure_reason)
        self.received.append(message)

    def event_types(self) -> list[str]:
        return [message["event_type"] for message in self.received]
