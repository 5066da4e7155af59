import asyncio
import random

import pytest
import pytest_asyncio

from app.domain.common.geo import offset_coordinates
from app.domain.common.session import create_session
from app.settings import Settings
from app.store.models import Coordinates

ORIGIN = Coordinates(latitude=45.0, longitude=-75.0)


def north_of(origin: Coordinates, meters: float) -> Coordinates:
    return offset_coordinates(origin, meters, 0.0)


class FakeApp:
    def __init__(self, session, wsman=None):
        self.state = type("State", (), {"session": session, "wsman": wsman})()


def make_session(**overrides):
    cfg = {"RECONNECT_GRACE_SEC": 0, "LOCATION_BROADCAST_MS": 0}
    cfg.update(overrides)
    return create_session(Settings(**cfg), rng=random.Random(7))


@pytest_asyncio.fixture
async def session():
    s = make_session()
    yield s
    await s.timers.cancel_all()


@pytest.fixture
def app(session):
    return FakeApp(session)


async def wait_until(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class EventLog:
    """Notifier listener that keeps every published event."""

    def __init__(self):
        self.events = []

    async def __call__(self, events):
        self.events.extend(events)

    def of_type(self, t):
        return [e for e in self.events if e["type"] == t]
