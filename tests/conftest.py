"""
Shared fixtures for the Fun Prints test suite.
"""

import asyncio
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from funprints.cart import CartStore, MemoryStorage
from funprints.config import Settings, get_settings
from funprints.database import ensure_indexes, get_db
from funprints.deps import get_notifier, get_postal_lookup
from funprints.errors import LookupUnavailable, NotificationFailed
from funprints.main import app
from funprints.postal import Locality
from funprints.schemas import Address, CartItem, Customer, OrderLineIn, OrderRequest, PaymentMethod

ADMIN_TOKEN = "test-admin-token"

# (product_id, color, size, stock)
STOCK = [
    ("tee-classic", "white", "M", 10),
    ("tee-classic", "black", "L", 2),
    ("hoodie", "grey", "XL", 1),
]


# ============================================================================
# Doubles
# ============================================================================


class RecordingNotifier:
    """Collects what would have been mailed; optionally fails every send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[tuple] = []

    async def _record(self, kind: str, ref: str) -> None:
        if self.fail:
            raise NotificationFailed(f"{kind} bounced")
        self.sent.append((kind, ref))

    async def send_order_confirmation(self, order):
        await self._record("customer", order.order_code)

    async def send_admin_alert(self, order):
        await self._record("admin", order.order_code)

    async def send_contact_message(self, message):
        await self._record("contact", message.email)

    async def send_bulk_enquiry_alert(self, enquiry):
        await self._record("bulk", enquiry.email)


class StubLookup:
    def __init__(self, results: Optional[Dict[str, List[Locality]]] = None, fail: bool = False):
        self.results = results or {}
        self.fail = fail
        self.calls: List[str] = []

    async def lookup(self, pincode: str) -> List[Locality]:
        self.calls.append(pincode)
        if self.fail:
            raise LookupUnavailable()
        return self.results.get(pincode, [])


# ============================================================================
# Builders
# ============================================================================


def make_customer(**overrides) -> Customer:
    data = {"name": "Priya Raman", "email": "priya@example.com", "mobile": "9876543210"}
    data.update(overrides)
    return Customer(**data)


def make_address(**overrides) -> Address:
    data = {
        "pincode": "600028",
        "state": "Tamil Nadu",
        "district": "Chennai",
        "city": "Mandaveli",
        "building_line": "12, 3rd Cross Street",
    }
    data.update(overrides)
    return Address(**data)


def make_line(product_id="tee-classic", color="white", size="M", quantity=1, unit_price=399.0) -> OrderLineIn:
    return OrderLineIn(
        product_id=product_id, name="Classic Tee", color=color, size=size,
        quantity=quantity, unit_price=unit_price,
    )


def make_request(items=None, method=PaymentMethod.COD, **overrides) -> OrderRequest:
    data = {
        "items": items or [make_line()],
        "customer": make_customer(),
        "address": make_address(),
        "payment_method": method,
    }
    data.update(overrides)
    return OrderRequest(**data)


def make_cart_item(**overrides) -> CartItem:
    data = {
        "product_id": "tee-classic",
        "name": "Classic Tee",
        "unit_price": 399.0,
        "quantity": 1,
        "size": "M",
        "color": "white",
    }
    data.update(overrides)
    return CartItem(**data)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["funprints_test"]

    async def prepare():
        await ensure_indexes(database)
        await database["product_variant"].insert_many([
            {"product_id": p, "color": c, "size": s, "stock": n, "is_available": n > 0}
            for p, c, s, n in STOCK
        ])

    asyncio.run(prepare())
    return database


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings():
    return Settings(_env_file=None, ADMIN_TOKEN=ADMIN_TOKEN, SMTP_HOST=None)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def cart(storage):
    return CartStore(storage)


@pytest.fixture
def client(db, notifier, settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def override_lookup():
    def _override(lookup):
        app.dependency_overrides[get_postal_lookup] = lambda: lookup
    return _override
