from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
import logging

from .config import get_settings

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None
_db: AsyncIOMotorDatabase | None = None

async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    bookings = db.bookings
    await bookings.create_index("booking_ref", unique=True)
    # Búsqueda de solapes por anuncio
    await bookings.create_index([("listing_id", ASCENDING), ("status", ASCENDING), ("start_date", ASCENDING)])
    # "Mis reservas" como renter / owner
    await bookings.create_index([("renter_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)])
    await bookings.create_index([("owner_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)])
    await bookings.create_index([("start_date", ASCENDING), ("end_date", ASCENDING)])
    await db.listings.create_index("owner_id")
    # Las leases huérfanas del mutex se borran solas
    await db.booking_locks.create_index("expires_at", expireAfterSeconds=0)

async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        settings = get_settings()
        _client = AsyncIOMotorClient(settings.mongodb_uri)
        _db = _client[settings.db_name]
        await ensure_indexes(_db)
        logger.info(f"Conectado a Mongo, base '{settings.db_name}'")
    return _db

def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client, _db = None, None
