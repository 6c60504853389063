"""
Marca como overdue las reservas aprobadas cuya fecha de fin ya pasó sin check-out.
Ejecutar como cron cada hora: 0 * * * * python -m scripts.mark_overdue_bookings
"""
import asyncio
import logging
import sys

from rentspace.db import close_db, get_db
from rentspace.services.booking_service import BookingService
from rentspace.services.stores import MongoBookingStore, MongoListingLock, MongoListingStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("mark_overdue_bookings")


async def main() -> int:
    db = await get_db()
    try:
        service = BookingService(MongoBookingStore(db), MongoListingStore(db), MongoListingLock(db))
        return await service.sweep_overdue()
    finally:
        close_db()


if __name__ == "__main__":
    try:
        count = asyncio.run(main())
    except Exception:
        logger.error("Fallo al marcar reservas overdue", exc_info=True)
        sys.exit(1)
    logger.info(f"Listo. {count} reservas marcadas como overdue.")
    sys.exit(0)
