"""
Límite por endpoint con el Limiter de slowapi que vive en app.state
"""
from fastapi import Request, HTTPException
from limits import parse
from slowapi.util import get_remote_address

def apply_rate_limit(request: Request, limit: str):
    """
    Cuenta una petición contra `limit` ("15/minute", "100/hour"...) por IP y ruta.
    Sin limiter en app.state (tests) no hace nada.
    """
    limiter = getattr(request.app.state, "limiter", None)
    if limiter is None:
        return

    item = parse(limit)
    # La estrategia de `limits` devuelve False al pasarse del límite
    allowed = limiter.limiter.hit(item, request.url.path, get_remote_address(request))
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests ({limit}), try again later",
        )
