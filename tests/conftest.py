import pytest

from console.notifications import NotificationCenter
from console.store import ResourceStore
from fakes import FakeClock, FakeGateway


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def vehicles_gateway():
    return FakeGateway(
        [
            {"id": "v1", "status": "active", "type": "E-Scooter"},
            {"id": "v2", "status": "active", "type": "Bicycle"},
            {"id": "v3", "status": "maintenance", "type": "Motorbike"},
        ],
        name="vehicles",
    )


@pytest.fixture
def approvals_gateway():
    return FakeGateway(
        [
            {"id": "a1", "status": "pending"},
            {"id": "a2", "status": "pending"},
            {"id": "a3", "status": "pending"},
        ],
        name="approvals",
    )


@pytest.fixture
def make_store(notifications, clock):
    def factory(gateway, **options):
        options.setdefault("clock", clock)
        return ResourceStore(gateway, notifications=notifications, **options)

    return factory
