"""
Configuración de pytest para tests
"""
import os
import pytest
from bson import ObjectId
from datetime import datetime
from dotenv import load_dotenv
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient
from motor.motor_asyncio import AsyncIOMotorClient

from fakes import FrozenClock, InMemoryBookingStore, InMemoryListingLock, InMemoryListingStore

load_dotenv()

# Con TEST_MONGODB_URI los tests de stores van contra un Mongo real;
# sin ella usan mongomock-motor
TEST_MONGODB_URI = os.getenv("TEST_MONGODB_URI")

# Fecha fija para que los cálculos de reembolso y overdue sean deterministas
NOW = datetime(2024, 1, 1, 0, 0, 0)

@pytest.fixture(scope="session", autouse=True)
def disable_rate_limiting():
    """Deshabilita rate limiting para todos los tests"""
    from rentspace.main import app
    app.state.limiter = None

@pytest.fixture
def clock():
    return FrozenClock(NOW)

@pytest.fixture
def booking_store():
    return InMemoryBookingStore()

@pytest.fixture
def listing_store():
    return InMemoryListingStore()

@pytest.fixture
def lock():
    return InMemoryListingLock()

@pytest.fixture
def service(booking_store, listing_store, lock, clock):
    from rentspace.services.booking_service import BookingService
    return BookingService(booking_store, listing_store, lock, clock=clock)

@pytest.fixture
def owner():
    return {"id": str(ObjectId()), "name": "Ayesha Khan", "role": "user"}

@pytest.fixture
def renter():
    return {"id": str(ObjectId()), "name": "Bilal Ahmed", "role": "user"}

@pytest.fixture
def other_renter():
    return {"id": str(ObjectId()), "name": "Sana Malik", "role": "user"}

@pytest.fixture
def admin():
    return {"id": str(ObjectId()), "name": "Admin", "role": "admin"}

@pytest.fixture
def make_listing(listing_store, owner):
    """Crea un anuncio en el store en memoria; por defecto 1000 PKR/día."""
    async def _make(pricing=None, blocked_dates=None, deposit=0, owner_id=None):
        return await listing_store.insert({
            "owner_id": owner_id or owner["id"],
            "title": "Studio apartment in Gulberg",
            "pricing": pricing if pricing is not None else {"daily": 1000, "currency": "PKR"},
            "availability": {"blocked_dates": blocked_dates or []},
            "policies": {"deposit": {"amount": deposit, "required": deposit > 0}},
            "created_at": NOW,
        })
    return _make

@pytest.fixture
def current_user():
    """Usuario autenticado que devuelve el override de get_current_user."""
    return {"user": None}

@pytest.fixture
async def client(service, listing_store, current_user):
    """Cliente ASGI con el servicio y el usuario actual sustituidos."""
    from rentspace.main import app
    from rentspace.dependencies import get_booking_service, get_listing_store
    from rentspace.security import get_current_user

    app.state.limiter = None
    app.dependency_overrides[get_booking_service] = lambda: service
    app.dependency_overrides[get_listing_store] = lambda: listing_store
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

@pytest.fixture
async def mongo_db():
    """Base de datos de test, una por test y borrada al terminar."""
    name = f"rentspace_test_{ObjectId()}"
    if not TEST_MONGODB_URI:
        yield AsyncMongoMockClient()[name]
        return
    client = AsyncIOMotorClient(TEST_MONGODB_URI)
    try:
        yield client[name]
    finally:
        await client.drop_database(name)
        client.close()
