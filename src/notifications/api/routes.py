"""FastAPI routes for live notifications over server-sent events.

Each stream holds one registry connection for as long as the client stays
connected. A comment line is written every heartbeat interval so dropped
clients are noticed even when no notifications flow, and a stream that has
delivered nothing for longer than the idle timeout is closed.
"""

import json

from fastapi import APIRouter, Header, HTTPException
from fastapi.responses import StreamingResponse

from notifications.api.schemas import ConnectionStatsResponse, TestNotificationRequest, TestNotificationResponse
from notifications.fanout import CloseReason, QueueConnection, get_registry
from notifications.producers import send_test_notification

notification_router = APIRouter(prefix="/notifications", tags=["notifications"])


def format_sse(message: dict) -> str:
    return f"event: {message['event_type']}\ndata: {json.dumps(message, default=str)}\n\n"


def sse_events(connection: QueueConnection, heartbeat: float | None = None):
    """Yield SSE frames for ``connection`` until it closes.

    Messages already queued when the connection closes are still flushed.
    Each heartbeat also expires the connection once it has been idle for
    longer than the registry's idle timeout.
    """
    registry = get_registry()
    if heartbeat is None:
        heartbeat = registry.heartbeat_interval
    try:
        while True:
            message = connection.next_message(timeout=heartbeat if connection.is_open else 0)
            if message is not None:
                yield format_sse(message)
            elif not connection.is_open or registry.expire_if_idle(connection):
                return
            else:
                yield ": keep-alive\n\n"
    finally:
        registry.unsubscribe(connection, CloseReason.CLIENT_DISCONNECT)


def _stream(connection) -> StreamingResponse:
    return StreamingResponse(
        sse_events(connection),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@notification_router.get("/stream")
async def user_stream(x_user_id: str | None = Header(default=None)):
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    connection = get_registry().subscribe(user_id=x_user_id)
    return _stream(connection)


@notification_router.get("/admin/stream")
async def admin_stream(x_user_role: str | None = Header(default=None)):
    if (x_user_role or "").lower() != "admin":
        raise HTTPException(status_code=403, detail="Admin role required")
    connection = get_registry().subscribe(admin=True)
    return _stream(connection)


@notification_router.get("/stats", response_model=ConnectionStatsResponse)
async def connection_stats() -> ConnectionStatsResponse:
    return ConnectionStatsResponse(**get_registry().stats())


@notification_router.post("/test", response_model=TestNotificationResponse)
async def test_notification(body: TestNotificationRequest) -> TestNotificationResponse:
    return TestNotificationResponse(delivered=send_test_notification(body.message))
