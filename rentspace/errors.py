"""
Errores de negocio del motor de reservas y su traducción a respuestas HTTP.

Los servicios lanzan estas excepciones; los routers no las capturan y el
handler registrado en main.py las convierte en JSON con el status adecuado.
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BookingError(Exception):
    status_code = 400
    code = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def extras(self) -> Dict[str, Any]:
        return {}


class InvalidRangeError(BookingError):
    code = "invalid_range"


class DateBlockedError(BookingError):
    status_code = 409
    code = "date_blocked"

    def __init__(self, dates: Iterable[date]):
        self.dates: List[str] = [d.isoformat() for d in dates]
        super().__init__(f"Listing is not available on: {', '.join(self.dates)}")

    def extras(self) -> Dict[str, Any]:
        return {"dates": self.dates}


class DateConflictError(BookingError):
    status_code = 409
    code = "date_conflict"

    def __init__(self, conflicts: List[Dict[str, Any]]):
        self.conflicts = conflicts
        super().__init__("Requested dates overlap an existing booking")

    def extras(self) -> Dict[str, Any]:
        return {"conflicts": self.conflicts}


class NoPricingAvailableError(BookingError):
    status_code = 422
    code = "no_pricing"

    def __init__(self, message: str = "Listing has no rate configured"):
        super().__init__(message)


class NotFoundError(BookingError):
    status_code = 404
    code = "not_found"


class SelfBookingError(BookingError):
    code = "self_booking"

    def __init__(self, message: str = "Cannot book your own listing"):
        super().__init__(message)


class AccessDeniedError(BookingError):
    status_code = 403
    code = "forbidden"


class UnauthorizedTransitionError(BookingError):
    status_code = 403
    code = "unauthorized_transition"


class InvalidTransitionError(BookingError):
    code = "invalid_transition"


class BookingBusyError(BookingError):
    """Otro request tiene el mutex del anuncio; el cliente puede reintentar."""
    status_code = 409
    code = "listing_busy"

    def __init__(self, listing_id: Optional[str] = None):
        self.listing_id = listing_id
        super().__init__("Another booking for this listing is being processed, try again")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        logger.info(f"{exc.code} en {request.method} {request.url.path}: {exc.message}")
        body: Dict[str, Any] = {"detail": exc.message, "code": exc.code}
        body.update(exc.extras())
        return JSONResponse(body, status_code=exc.status_code)
