"""
Orquestación del motor de reservas: lee anuncio y reservas, aplica las reglas
puras de conflicts/pricing/lifecycle y persiste el resultado.
"""
from datetime import datetime, time, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging

from ..errors import (
    AccessDeniedError,
    InvalidTransitionError,
    NotFoundError,
    SelfBookingError,
    UnauthorizedTransitionError,
)
from ..schemas.booking import BookingStatus, PaymentStatus, PriceType
from ..utils import to_naive_utc, utcnow
from . import lifecycle
from .conflicts import blocked_days_in_range, ensure_bookable, validate_range
from .lifecycle import Actor
from .pricing import calculate_price, quote_extension

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, bookings, listings, lock, clock: Callable[[], datetime] = utcnow):
        self.bookings = bookings
        self.listings = listings
        self.lock = lock
        self.clock = clock

    # ---------- Lectura ----------

    async def _load(self, booking_id: str) -> Dict[str, Any]:
        doc = await self.bookings.get(booking_id)
        if not doc:
            raise NotFoundError("Booking not found")
        return doc

    async def _load_listing(self, listing_id: str) -> Dict[str, Any]:
        listing = await self.listings.find_by_id(listing_id)
        if not listing:
            raise NotFoundError("Listing not found")
        return listing

    async def get_booking(self, booking_id: str, actor: Actor) -> Dict[str, Any]:
        doc = await self._load(booking_id)
        if not (lifecycle.is_party(doc, actor) or actor.is_admin):
            raise AccessDeniedError("Not authorized to view this booking")
        return doc

    async def list_bookings(self, actor: Actor, role: Optional[str] = None, status: Optional[BookingStatus] = None) -> List[Dict[str, Any]]:
        return await self.bookings.list_for_user(actor.id, role, status.value if status else None)

    async def stats(self, actor: Actor, role: str = "renter") -> Dict[str, Any]:
        return await self.bookings.stats_for_user(actor.id, role)

    async def quote(
        self,
        listing_id: str,
        start: datetime,
        end: datetime,
        price_type: Optional[PriceType] = None,
    ) -> Dict[str, Any]:
        """Disponibilidad y precio de un rango sin crear nada."""
        start, end = to_naive_utc(start), to_naive_utc(end)
        validate_range(start, end)
        listing = await self._load_listing(listing_id)
        price = calculate_price(listing, start, end, price_type)
        blocked = blocked_days_in_range((listing.get("availability") or {}).get("blocked_dates", []), start, end)
        existing = await self.bookings.find_holding_overlaps(listing_id, start, end)
        return {
            "available": not blocked and not existing,
            "blocked_dates": [d.isoformat() for d in blocked],
            "conflicts": len(existing),
            "price_type": price.price_type,
            "duration": price.duration_doc(),
            "unit_price": price.unit_price,
            "subtotal": price.subtotal,
            "service_fee": price.service_fee,
            "total_amount": price.total_amount,
            "deposit": price.deposit,
            "currency": price.currency,
        }

    # ---------- Crear ----------

    async def create_booking(
        self,
        renter: Actor,
        listing_id: str,
        start: datetime,
        end: datetime,
        message: Optional[str] = None,
        price_type: Optional[PriceType] = None,
    ) -> Dict[str, Any]:
        start, end = to_naive_utc(start), to_naive_utc(end)
        validate_range(start, end)

        listing = await self._load_listing(listing_id)
        owner_id = str(listing.get("owner_id"))
        if owner_id == renter.id:
            raise SelfBookingError()

        # Comprobar y guardar bajo el mutex del anuncio
        async with self.lock.hold(listing_id):
            existing = await self.bookings.find_holding_overlaps(listing_id, start, end)
            ensure_bookable(listing, start, end, existing)
            price = calculate_price(listing, start, end, price_type)

            now = self.clock()
            doc = {
                "booking_ref": lifecycle.generate_booking_ref(now),
                "listing_id": listing_id,
                "renter_id": renter.id,
                "owner_id": owner_id,
                "start_date": start,
                "end_date": end,
                "duration": price.duration_doc(),
                "pricing": price.pricing_doc(),
                "status": BookingStatus.pending.value,
                "payment_status": PaymentStatus.pending.value,
                "message": message,
                "owner_response": None,
                "cancellation": None,
                "extensions": [],
                "check_in": {"scheduled_time": lifecycle.scheduled_check_in(start)},
                "check_out": {"scheduled_time": lifecycle.scheduled_check_out(end)},
                "requested_at": now,
                "created_at": now,
                "updated_at": now,
            }
            created = await self.bookings.insert(doc)

        logger.info(
            f"Reserva {created['booking_ref']} creada: listing={listing_id} renter={renter.id} "
            f"total={price.total_amount} {price.currency}"
        )
        return created

    # ---------- Transiciones ----------

    async def _save(
        self,
        doc: Dict[str, Any],
        fields: Dict[str, Any],
        pending_extension_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        updated = await self.bookings.update(
            str(doc["_id"]), fields,
            expected_status=doc["status"], pending_extension_id=pending_extension_id,
        )
        if updated is None:
            raise InvalidTransitionError("Booking was modified concurrently, reload and retry")
        return updated

    async def transition(
        self,
        booking_id: str,
        target: BookingStatus,
        actor: Actor,
        reason: Optional[str] = None,
        message: Optional[str] = None,
        notes: Optional[str] = None,
        damage_report: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        doc = await self._load(booking_id)
        fields = lifecycle.plan_transition(
            doc, target, actor, self.clock(),
            reason=reason, message=message, notes=notes, damage_report=damage_report,
        )
        if not fields:
            return doc
        updated = await self._save(doc, fields)
        logger.info(f"Reserva {doc.get('booking_ref')}: {doc['status']} → {target.value} por {actor.id}")
        if target == BookingStatus.cancelled:
            c = fields["cancellation"]
            logger.info(
                f"Reembolso {doc.get('booking_ref')}: {c['refund_percentage']}% = {c['refund_amount']} "
                f"({c['refund_status']})"
            )
        return updated

    async def check_in(self, booking_id: str, actor: Actor, notes: Optional[str] = None) -> Dict[str, Any]:
        return await self.transition(booking_id, BookingStatus.in_progress, actor, notes=notes)

    async def check_out(
        self,
        booking_id: str,
        actor: Actor,
        notes: Optional[str] = None,
        damage_report: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self.transition(
            booking_id, BookingStatus.completed, actor, notes=notes, damage_report=damage_report
        )

    # ---------- Extensiones ----------

    async def request_extension(self, booking_id: str, actor: Actor, new_end: datetime) -> Dict[str, Any]:
        doc = await self._load(booking_id)
        new_end = to_naive_utc(new_end)
        now = self.clock()
        lifecycle.check_extension_request(doc, actor, new_end)
        amount = quote_extension(doc["pricing"], doc["end_date"], new_end)
        ext = lifecycle.new_extension(doc, actor, new_end, amount, now)
        # $push condicionado: dos solicitudes simultáneas no dejan dos pendientes
        updated = await self.bookings.push_extension(str(doc["_id"]), ext, expected_status=doc["status"], now=now)
        if updated is None:
            raise InvalidTransitionError("Booking changed or already has a pending extension, reload and retry")
        logger.info(f"Extensión solicitada en {doc.get('booking_ref')} hasta {new_end.isoformat()} (+{amount})")
        return updated

    async def approve_extension(self, booking_id: str, extension_id: str, actor: Actor) -> Dict[str, Any]:
        doc = await self._load(booking_id)
        ext = lifecycle.find_pending_extension(doc, extension_id, actor)
        listing = await self._load_listing(doc["listing_id"])

        # Se vuelve a validar el tramo nuevo contra otras reservas y días bloqueados
        async with self.lock.hold(doc["listing_id"]):
            start, end = doc["end_date"], ext["new_end_date"]
            existing = await self.bookings.find_holding_overlaps(
                doc["listing_id"], start, end, exclude_booking_id=doc["_id"]
            )
            ensure_bookable(
                listing, start, end, existing,
                exclude_booking_id=doc["_id"],
                blocked_from=datetime.combine(start.date() + timedelta(days=1), time.min),
            )
            fields = lifecycle.plan_extension_approval(doc, ext, self.clock())
            updated = await self._save(doc, fields, pending_extension_id=ext["id"])

        logger.info(
            f"Extensión aprobada en {doc.get('booking_ref')}: fin {end.isoformat()}, +{ext['additional_amount']}"
        )
        return updated

    async def reject_extension(self, booking_id: str, extension_id: str, actor: Actor) -> Dict[str, Any]:
        doc = await self._load(booking_id)
        ext = lifecycle.find_pending_extension(doc, extension_id, actor)
        fields = lifecycle.plan_extension_rejection(doc, ext, self.clock())
        updated = await self._save(doc, fields, pending_extension_id=ext["id"])
        logger.info(f"Extensión rechazada en {doc.get('booking_ref')}")
        return updated

    # ---------- Administración ----------

    async def set_payment_status(self, booking_id: str, actor: Actor, payment_status: PaymentStatus) -> Dict[str, Any]:
        if not actor.is_admin:
            raise UnauthorizedTransitionError("Only an admin can record payment status")
        doc = await self._load(booking_id)
        updated = await self._save(doc, {"payment_status": payment_status.value, "updated_at": self.clock()})
        logger.info(f"Pago de {doc.get('booking_ref')}: {doc.get('payment_status')} → {payment_status.value}")
        return updated

    async def delete_booking(self, booking_id: str, actor: Actor) -> None:
        if not actor.is_admin:
            raise AccessDeniedError("Only an admin can delete bookings")
        if not await self.bookings.delete(booking_id):
            raise NotFoundError("Booking not found")
        logger.info(f"Reserva {booking_id} eliminada por admin {actor.id}")

    async def sweep_overdue(self) -> int:
        """Marca como overdue las reservas aprobadas cuya fecha de fin ya pasó sin check-out."""
        count = await self.bookings.mark_overdue(self.clock())
        logger.info(f"{count} reservas marcadas como overdue")
        return count
