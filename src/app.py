"""Shopcore FastAPI application.

Web server that processes commerce commands synchronously via HTTP and
streams live notifications over server-sent events.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied.
from commerce.domain import commerce
from commerce.settings import get_settings
from commerce.utils.logging import clear_actor, configure_logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from notifications.fanout import SubscriptionRegistry, get_registry, reset_registry, set_registry
from protean.integrations.fastapi import register_exception_handlers

configure_logging()
commerce.init()

_NOTIFICATION_PREFIX = "/notifications"

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Shopcore API",
    description="Inventory reservations, carts, order lifecycle and live notifications",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.on_event("startup")
async def start_notifications():
    settings = get_settings()
    set_registry(
        SubscriptionRegistry(
            idle_timeout=settings.notification_idle_timeout_seconds,
            queue_size=settings.notification_queue_size,
            heartbeat_interval=settings.notification_heartbeat_seconds,
        )
    )


@app.on_event("shutdown")
async def stop_notifications():
    reset_registry()


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Reset the log context and push the commerce domain context (except for notification streams)."""
    clear_actor()
    if request.url.path.startswith(_NOTIFICATION_PREFIX):
        return await call_next(request)
    with commerce.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from commerce.api import admin_order_router, cart_router, inventory_router, order_router  # noqa: E402
from notifications.api import notification_router  # noqa: E402

app.include_router(inventory_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(admin_order_router)
app.include_router(notification_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"commerce": {"name": commerce.name}},
            "notifications": get_registry().stats(),
        }
    )
