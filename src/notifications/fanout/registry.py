"""Subscription registry — process-wide fan-out of live notifications.

Connections are bucketed per user id, plus one bucket for administrators.
``publish`` targets a single user, every user (``ALL_USERS``) or the admin
bucket (``ADMIN``). Delivery is best-effort and at-most-once: a connection
that fails a send is closed and dropped, never retried.
"""

import threading
import time
from datetime import UTC, datetime

import structlog

from notifications.fanout.connection import CloseReason, Connection, DeliveryError, QueueConnection

logger = structlog.get_logger(__name__)

ALL_USERS = "__all_users__"
ADMIN = "__admin__"

DEFAULT_IDLE_TIMEOUT = 30 * 60


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class SubscriptionRegistry:
    def __init__(
        self,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        queue_size: int = 100,
        heartbeat_interval: float = 15.0,
        clock=time.monotonic,
        connection_factory=None,
        timestamp_factory=_now_iso,
    ):
        self.idle_timeout = idle_timeout
        self.queue_size = queue_size
        self.heartbeat_interval = heartbeat_interval
        self._clock = clock
        self._timestamp = timestamp_factory
        self._connection_factory = connection_factory or self._queue_connection
        self._lock = threading.Lock()
        self._users: dict[str, list[Connection]] = {}
        self._admins: list[Connection] = []

    def _queue_connection(self, user_id=None, admin=False):
        return QueueConnection(user_id=user_id, admin=admin, clock=self._clock, maxsize=self.queue_size)

    def _message(self, event_type: str, payload) -> dict:
        return {"event_type": event_type, "payload": payload, "timestamp": self._timestamp()}

    # -------------------------------------------------------------------
    # Subscription lifecycle
    # -------------------------------------------------------------------
    def subscribe(self, user_id: str | None = None, admin: bool = False) -> Connection:
        """Register a new connection and send it the ``connection`` acknowledgement."""
        if not admin and not user_id:
            raise ValueError("A subscription needs a user id or the admin flag")

        connection = self._connection_factory(user_id=None if admin else str(user_id), admin=admin)
        with self._lock:
            if admin:
                self._admins.append(connection)
            else:
                self._users.setdefault(connection.user_id, []).append(connection)

        greeting = "Connected to admin notifications" if admin else "Connected to notifications"
        try:
            connection.deliver(self._message("connection", greeting))
        except DeliveryError as exc:
            logger.warning("Failed to acknowledge new subscription", connection_id=connection.id, error=str(exc))
            self.unsubscribe(connection, CloseReason.SEND_ERROR)
            return connection

        logger.info("Notification subscription opened", connection_id=connection.id, user_id=connection.user_id, admin=admin)
        return connection

    def unsubscribe(self, connection: Connection, reason: CloseReason = CloseReason.CLIENT_DISCONNECT) -> None:
        """Close and remove ``connection``. Safe to call more than once."""
        connection.close(reason)
        with self._lock:
            self._detach(connection)

    def _detach(self, connection: Connection) -> None:
        # Caller holds self._lock
        if connection.admin:
            if connection in self._admins:
                self._admins.remove(connection)
            return

        bucket = self._users.get(connection.user_id)
        if bucket is None:
            return
        if connection in bucket:
            bucket.remove(connection)
        if not bucket:
            del self._users[connection.user_id]

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    def _targets(self, target: str) -> list[Connection]:
        with self._lock:
            if target == ADMIN:
                return list(self._admins)
            if target == ALL_USERS:
                return [connection for bucket in self._users.values() for connection in bucket]
            return list(self._users.get(str(target), ()))

    def publish(self, target: str, event_type: str, payload) -> int:
        """Deliver one message to every live connection in ``target``.

        Returns the number of connections that accepted the message. Dead,
        idle and failing connections are removed along the way.
        """
        message = self._message(event_type, payload)
        now = self._clock()
        delivered = 0
        dropped: list[tuple[Connection, CloseReason]] = []

        for connection in self._targets(target):
            if not connection.is_open:
                dropped.append((connection, connection.close_reason or CloseReason.CLIENT_DISCONNECT))
                continue
            if connection.idle_for(now) > self.idle_timeout:
                dropped.append((connection, CloseReason.TIMEOUT))
                continue
            try:
                connection.deliver(message)
            except DeliveryError as exc:
                logger.warning(
                    "Notification delivery failed, dropping connection",
                    connection_id=connection.id,
                    user_id=connection.user_id,
                    event_type=event_type,
                    error=str(exc),
                )
                dropped.append((connection, CloseReason.SEND_ERROR))
                continue
            delivered += 1

        for connection, reason in dropped:
            self.unsubscribe(connection, reason)

        logger.debug(
            "Notification published",
            target=target,
            event_type=event_type,
            delivered=delivered,
            dropped=len(dropped),
        )
        return delivered

    def publish_to_user(self, user_id, event_type: str, payload) -> int:
        return self.publish(str(user_id), event_type, payload)

    def publish_to_admins(self, event_type: str, payload) -> int:
        return self.publish(ADMIN, event_type, payload)

    def broadcast(self, event_type: str, payload) -> int:
        return self.publish(ALL_USERS, event_type, payload)

    # -------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------
    def sweep_idle(self) -> int:
        """Close every connection idle for longer than the timeout. Returns how many were closed."""
        now = self._clock()
        with self._lock:
            connections = list(self._admins) + [c for bucket in self._users.values() for c in bucket]

        expired = [c for c in connections if not c.is_open or c.idle_for(now) > self.idle_timeout]
        for connection in expired:
            self.unsubscribe(connection, CloseReason.TIMEOUT)

        if expired:
            logger.info("Closed idle notification connections", closed=len(expired))
        return len(expired)

    def expire_if_idle(self, connection: Connection) -> bool:
        """Close ``connection`` with reason TIMEOUT once it has been idle too long."""
        if connection.idle_for(self._clock()) <= self.idle_timeout:
            return False
        self.unsubscribe(connection, CloseReason.TIMEOUT)
        logger.info("Closed idle notification connection", connection_id=connection.id, user_id=connection.user_id)
        return True

    def stats(self) -> dict:
        with self._lock:
            return {
                "connected_users": len(self._users),
                "total_user_connections": sum(len(bucket) for bucket in self._users.values()),
                "admin_connections": len(self._admins),
            }

    def connections_for(self, user_id) -> list[Connection]:
        with self._lock:
            return list(self._users.get(str(user_id), ()))

    def close_all(self) -> None:
        with self._lock:
            connections = list(self._admins) + [c for bucket in self._users.values() for c in bucket]
        for connection in connections:
            self.unsubscribe(connection, CloseReason.CLIENT_DISCONNECT)
