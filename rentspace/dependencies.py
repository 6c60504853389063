from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from .config import get_settings
from .db import get_db
from .services.booking_service import BookingService
from .services.stores import MongoBookingStore, MongoListingLock, MongoListingStore


async def get_listing_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> MongoListingStore:
    return MongoListingStore(db)


async def get_booking_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> BookingService:
    settings = get_settings()
    lock = MongoListingLock(
        db,
        ttl_seconds=settings.booking_lock_ttl_seconds,
        attempts=settings.booking_lock_attempts,
    )
    return BookingService(MongoBookingStore(db), MongoListingStore(db), lock)
