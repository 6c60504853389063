from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging

from .config import get_settings
from .db import close_db
from .errors import register_error_handlers
from .routers import bookings, listings

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()

DEV_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]

def cors_options(env: str, frontend_url: str) -> dict:
    """Orígenes y headers permitidos; en dev se acepta cualquier puerto de localhost."""
    if env == "dev":
        return {
            "allow_origins": DEV_ORIGINS,
            "allow_origin_regex": r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
            "allow_headers": ["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
        }
    return {
        "allow_origins": [frontend_url] if frontend_url else [],
        "allow_origin_regex": None,
        "allow_headers": ["Authorization", "Content-Type", "Accept"],
    }

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.app_name} arrancando (env={settings.env})")
    yield
    close_db()

app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Rate limiting: el limiter queda en app.state para apply_rate_limit
app.state.limiter = Limiter(key_func=get_remote_address)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    expose_headers=["Content-Type"],
    **cors_options(settings.env, settings.frontend_base_url),
)

@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.env, "app": settings.app_name}

app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(listings.router, prefix="/listings", tags=["listings"])
