import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers

from commerce.api import admin_order_router, cart_router, inventory_router, order_router


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(inventory_router)
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(admin_order_router)
    register_exception_handlers(app)
    return TestClient(app)
