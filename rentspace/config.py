from functools import lru_cache
from pydantic import BaseModel, ConfigDict
import os
from dotenv import load_dotenv
load_dotenv()  # .env en la raíz del proyecto

from .schemas.booking import Currency

def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))

class Settings(BaseModel):
    # Los valores salen del entorno, así que también se validan los por defecto
    model_config = ConfigDict(validate_default=True)

    # App
    app_name: str = os.getenv("APP_NAME", "RentSpace")
    env: str = os.getenv("APP_ENV", "dev")
    frontend_base_url: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173")

    # Mongo
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    db_name: str = os.getenv("DB_NAME", "rentspace")

    # Tokens emitidos por el servicio de auth
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me")
    jwt_expires_hours: int = _env_int("JWT_EXPIRES_HOURS", 8)

    # Reservas
    default_currency: Currency = os.getenv("DEFAULT_CURRENCY", "PKR").upper()
    booking_lock_ttl_seconds: int = _env_int("BOOKING_LOCK_TTL_SECONDS", 30)
    booking_lock_attempts: int = _env_int("BOOKING_LOCK_ATTEMPTS", 20)


@lru_cache
def get_settings() -> Settings:
    return Settings()
