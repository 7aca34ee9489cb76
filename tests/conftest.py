"""
Pytest configuration for all tests.

Every test runs against a fresh SQLite database bound to the shared
`sessionMaker`. Redis locks and OpenObserve shipping are mocked, so no
external service is needed.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from marketplace.src import db
from marketplace.src.db import ORMbase, Order, Rider, sessionMaker
from marketplace.src.enums import RiderStatus, StoreType, VehicleType


@pytest.fixture(autouse=True)
def database(tmp_path):
    """Bind the application sessions to a throwaway SQLite file."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'marketplace.db'}",
        connect_args={"check_same_thread": False},
    )
    ORMbase.metadata.create_all(engine)
    sessionMaker.configure(bind=engine)
    yield engine
    sessionMaker.configure(bind=db.engine)
    ORMbase.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def redisClient():
    """Every mutex is granted immediately."""
    with patch("marketplace.src.redis.redisClient") as client:
        client.lock.return_value.acquire.return_value = True
        yield client


@pytest.fixture(autouse=True)
def auditLog():
    with patch("marketplace.src.openobserve.logEvent") as logEvent:
        yield logEvent


@pytest.fixture
def session():
    session = sessionMaker()
    yield session
    session.close()


@pytest.fixture
def client():
    from marketplace.main import app

    with TestClient(app) as testClient:
        yield testClient


@pytest.fixture
def makeRider(session):
    counter = {"value": 0}

    def factory(**kwargs) -> Rider:
        counter["value"] += 1
        number = counter["value"]
        values = {
            "name": f"Rider {number}",
            "phone": f"+9194968011{number:02d}",
            "email": f"rider{number}@marketplace.com",
            "password": "hashed",
            "vehicle_type": VehicleType.BIKE,
            "vehicle_number": f"KL01AB{1000 + number}",
            "license_number": f"KL01{number:011d}",
            "status": RiderStatus.AVAILABLE,
            "latitude": 8.5241,
            "longitude": 76.9366,
            "address": "Pattom, Thiruvananthapuram",
        }
        values.update(kwargs)
        rider = Rider(**values)
        session.add(rider)
        session.commit()
        return rider

    return factory


@pytest.fixture
def makeOrder(session):
    def factory(**kwargs) -> Order:
        values = {
            "user_id": 1,
            "store_type": StoreType.RESTAURANT,
            "store_id": 1,
            "store_name": "Cliff cafe",
            "items": [
                {"item_id": 1, "item_type": "food", "name": "Biryani", "price": 240, "quantity": 1}
            ],
            "delivery_address": {
                "street": "Temple road",
                "city": "Varkala",
                "state": "Kerala",
                "zip_code": "695141",
                "country": "India",
            },
            "sub_total": Decimal("240.00"),
            "delivery_charge": Decimal("30.00"),
            "total_amount": Decimal("270.00"),
        }
        values.update(kwargs)
        order = Order(**values)
        session.add(order)
        session.commit()
        return order

    return factory


@pytest.fixture
def freshSession():
    """A fresh session for reading committed state after a workflow call."""
    sessions = []

    def factory():
        newSession = sessionMaker()
        sessions.append(newSession)
        return newSession

    yield factory
    for openSession in sessions:
        openSession.close()
