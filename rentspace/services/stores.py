"""
Acceso a Mongo para el motor de reservas.

BookingService sólo habla con estas clases, así los tests pueden sustituirlas
por versiones en memoria.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import uuid4
import asyncio
import logging

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..errors import BookingBusyError
from ..schemas.booking import BookingStatus, ExtensionStatus, PaymentStatus
from ..utils import utcnow
from .conflicts import HOLDING_STATUS_VALUES

logger = logging.getLogger(__name__)


def _oid(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(str(value)):
        return None
    return ObjectId(str(value))


class MongoListingStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection: AsyncIOMotorCollection = db.listings

    async def find_by_id(self, listing_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(listing_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid})

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        res = await self.collection.insert_one(doc)
        return await self.collection.find_one({"_id": res.inserted_id})

    async def set_blocked_dates(self, listing_id: str, blocked_dates: List[str]) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one_and_update(
            {"_id": _oid(listing_id)},
            {"$set": {"availability.blocked_dates": blocked_dates}},
            return_document=ReturnDocument.AFTER,
        )


class MongoBookingStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection: AsyncIOMotorCollection = db.bookings

    async def find_holding_overlaps(
        self,
        listing_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[Any] = None,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {
            "listing_id": listing_id,
            "status": {"$in": HOLDING_STATUS_VALUES},
            "start_date": {"$lte": end},
            "end_date": {"$gte": start},
        }
        if exclude_booking_id is not None:
            query["_id"] = {"$ne": _oid(exclude_booking_id)}
        return await self.collection.find(query).to_list(500)

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        res = await self.collection.insert_one(doc)
        return await self.collection.find_one({"_id": res.inserted_id})

    async def get(self, booking_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(booking_id)
        if oid is None:
            return None
        return await self.collection.find_one({"_id": oid})

    async def update(
        self,
        booking_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None,
        pending_extension_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        $set de `fields`. Con `expected_status` sólo actualiza si el estado no
        cambió desde que se leyó, y con `pending_extension_id` sólo si esa
        extensión sigue pendiente. Si no se cumple devuelve None.
        """
        query: Dict[str, Any] = {"_id": _oid(booking_id)}
        if expected_status is not None:
            query["status"] = expected_status
        if pending_extension_id is not None:
            query["extensions"] = {
                "$elemMatch": {"id": pending_extension_id, "status": ExtensionStatus.pending.value}
            }
        return await self.collection.find_one_and_update(
            query, {"$set": fields}, return_document=ReturnDocument.AFTER
        )

    async def push_extension(
        self,
        booking_id: str,
        extension: Dict[str, Any],
        expected_status: str,
        now: datetime,
    ) -> Optional[Dict[str, Any]]:
        """Añade la extensión sólo si no hay otra pendiente; si la hay devuelve None."""
        return await self.collection.find_one_and_update(
            {
                "_id": _oid(booking_id),
                "status": expected_status,
                "extensions.status": {"$ne": ExtensionStatus.pending.value},
            },
            {"$push": {"extensions": extension}, "$set": {"updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, booking_id: str) -> bool:
        res = await self.collection.delete_one({"_id": _oid(booking_id)})
        return res.deleted_count > 0

    async def list_for_user(
        self,
        user_id: str,
        role: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if role == "renter":
            query: Dict[str, Any] = {"renter_id": user_id}
        elif role == "owner":
            query = {"owner_id": user_id}
        else:
            query = {"$or": [{"renter_id": user_id}, {"owner_id": user_id}]}
        if status:
            query["status"] = status
        return await self.collection.find(query).sort("created_at", -1).to_list(500)

    async def stats_for_user(self, user_id: str, role: str = "renter") -> Dict[str, Any]:
        match_field = "renter_id" if role == "renter" else "owner_id"
        pipeline = [
            {"$match": {match_field: user_id}},
            {"$group": {
                "_id": None,
                "total_bookings": {"$sum": 1},
                "completed_bookings": {
                    "$sum": {"$cond": [{"$eq": ["$status", BookingStatus.completed.value]}, 1, 0]}
                },
                "cancelled_bookings": {
                    "$sum": {"$cond": [{"$eq": ["$status", BookingStatus.cancelled.value]}, 1, 0]}
                },
                "total_spent": {
                    "$sum": {"$cond": [
                        {"$eq": ["$payment_status", PaymentStatus.paid.value]},
                        "$pricing.total_amount",
                        0,
                    ]}
                },
            }},
        ]
        rows = await self.collection.aggregate(pipeline).to_list(1)
        if not rows:
            return {}
        row = rows[0]
        row.pop("_id", None)
        return row

    async def mark_overdue(self, now: datetime) -> int:
        res = await self.collection.update_many(
            {
                "status": BookingStatus.approved.value,
                "end_date": {"$lt": now},
                "check_out.actual_time": None,
            },
            {"$set": {"status": BookingStatus.overdue.value, "updated_at": now}},
        )
        return res.modified_count


class MongoListingLock:
    """
    Mutex por anuncio guardado en `booking_locks` (_id = listing_id).

    Serializa la comprobación de conflictos y la inserción entre procesos.
    Una lease vencida se reclama; el índice TTL limpia las huérfanas.
    """

    def __init__(self, db: AsyncIOMotorDatabase, ttl_seconds: int = 30, attempts: int = 20, backoff: float = 0.05):
        self.collection: AsyncIOMotorCollection = db.booking_locks
        self.ttl = timedelta(seconds=ttl_seconds)
        self.attempts = max(1, attempts)
        self.backoff = backoff

    async def _try_acquire(self, listing_id: str, token: str) -> bool:
        now = utcnow()
        try:
            await self.collection.insert_one({"_id": listing_id, "token": token, "expires_at": now + self.ttl})
            return True
        except DuplicateKeyError:
            stolen = await self.collection.find_one_and_update(
                {"_id": listing_id, "expires_at": {"$lt": now}},
                {"$set": {"token": token, "expires_at": now + self.ttl}},
            )
            if stolen is not None:
                logger.warning(f"Lease vencida reclamada para listing {listing_id}")
            return stolen is not None

    @asynccontextmanager
    async def hold(self, listing_id: str) -> AsyncIterator[None]:
        token = uuid4().hex
        for _ in range(self.attempts):
            if await self._try_acquire(listing_id, token):
                break
            await asyncio.sleep(self.backoff)
        else:
            logger.warning(f"No se pudo obtener el lock del listing {listing_id} tras {self.attempts} intentos")
            raise BookingBusyError(listing_id)
        try:
            yield
        finally:
            await self.collection.delete_one({"_id": listing_id, "token": token})
