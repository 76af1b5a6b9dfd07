"""Subscriber connections for the notification fan-out.

A connection is a live, in-memory delivery handle. It is OPEN until it is
closed exactly once, for one of three reasons. The registry owns closing;
connections only report failures by raising from ``send``.
"""

import queue
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from uuid import uuid4


class ConnectionState(Enum):
    OPEN = "Open"
    CLOSED = "Closed"


class CloseReason(Enum):
    CLIENT_DISCONNECT = "client_disconnect"
    TIMEOUT = "timeout"
    SEND_ERROR = "send_error"


class DeliveryError(Exception):
    """A message could not be handed to the subscriber."""


class Connection(ABC):
    """Abstract subscriber connection."""

    def __init__(self, user_id: str | None = None, admin: bool = False, clock=time.monotonic):
        self.id = uuid4().hex
        self.user_id = user_id
        self.admin = admin
        self._clock = clock
        self.state = ConnectionState.OPEN
        self.close_reason: CloseReason | None = None
        self._close_lock = threading.Lock()
        self.opened_at = clock()
        self.last_activity = self.opened_at

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def idle_for(self, now: float) -> float:
        return now - self.last_activity

    def touch(self) -> None:
        self.last_activity = self._clock()

    def deliver(self, message: dict) -> None:
        """Send ``message`` and record the activity. Raises DeliveryError on failure."""
        if not self.is_open:
            raise DeliveryError(f"Connection {self.id} is closed")
        self.send(message)
        self.touch()

    def close(self, reason: CloseReason) -> bool:
        """Close the connection. Returns False if it was already closed."""
        with self._close_lock:
            if not self.is_open:
                return False
            self.state = ConnectionState.CLOSED
            self.close_reason = reason
            return True

    @abstractmethod
    def send(self, message: dict) -> None:
        """Hand one message to the subscriber without blocking."""
        ...


class QueueConnection(Connection):
    """Connection backed by a bounded outbox drained by the HTTP stream.

    ``send`` never blocks; a full outbox means the subscriber is not keeping
    up and counts as a delivery failure.
    """

    def __init__(self, user_id=None, admin=False, clock=time.monotonic, maxsize=100):
        super().__init__(user_id=user_id, admin=admin, clock=clock)
        self._outbox: queue.Queue = queue.Queue(maxsize=maxsize)

    def send(self, message: dict) -> None:
        try:
            self._outbox.put_nowait(message)
        except queue.Full as exc:
            raise DeliveryError(f"Outbox full for connection {self.id}") from exc

    def next_message(self, timeout: float | None = None) -> dict | None:
        """Pop the next pending message, or None when nothing arrives in time."""
        try:
            return self._outbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._outbox.qsize()
