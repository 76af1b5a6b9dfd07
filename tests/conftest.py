import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Select the Protean config overlay before any domain is initialized.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_adapters():
    """Swap every process-wide adapter back to its default after each test."""
    yield

    from commerce.catalogue import reset_catalogue
    from commerce.settings import reset_settings
    from notifications.fanout import reset_registry

    reset_catalogue()
    reset_settings()
    reset_registry()


class ManualClock:
    """Monotonic clock that only moves when a test advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def registry(clock):
    """A registry of FakeConnections installed as the process-wide registry."""
    from notifications.fanout import SubscriptionRegistry, set_registry
    from notifications.fanout.fake_connection import FakeConnection

    fake_registry = SubscriptionRegistry(
        idle_timeout=60,
        clock=clock,
        connection_factory=lambda user_id=None, admin=False: FakeConnection(user_id=user_id, admin=admin, clock=clock),
        timestamp_factory=lambda: "2026-01-01T00:00:00+00:00",
    )
    set_registry(fake_registry)
    return fake_registry
