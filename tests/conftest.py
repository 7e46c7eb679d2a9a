"""
Global test configuration.

Points the application settings at throwaway SQLite storage and the mock
alert sink before any orderflow module is imported, then provides a fresh
database, store and lifecycle manager per test.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENV_MODE", "development")
os.environ.setdefault("LEDGER_EXPORT_ENABLED", "false")
os.environ.setdefault("MINIMUM_ORDER_AMOUNT", "300")

import pytest

from orderflow.database import build_engine, build_session_maker, init_db
from orderflow.services.cart import MenuSelection
from orderflow.services.lifecycle import OrderLifecycleManager
from orderflow.services.order_store import OrderStore

MINIMUM = 300


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so separate connections see the same data."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def store(session_maker):
    return OrderStore(session_maker)


@pytest.fixture
def events():
    return []


@pytest.fixture
def manager(store, events):
    return OrderLifecycleManager(store, minimum_order_amount=MINIMUM, on_event=events.append)


@pytest.fixture
def selections():
    """150×2 + 50×1 = 350"""
    return [
        MenuSelection("biryani", "Kacchi Biryani", 150, 2),
        MenuSelection("borhani", "Borhani", 50, 1),
    ]


@pytest.fixture
def customer():
    return {
        "customer_name": "Rahim Uddin",
        "customer_phone": "01711-000000",
        "customer_location": "Room 204, Block C",
    }
