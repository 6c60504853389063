"""
Verificación de los bearer tokens. Los emite el servicio de auth con el id del
usuario en `sub`; aquí sólo se decodifican y se carga el usuario.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase
from bson import ObjectId

from .config import get_settings
from .db import get_db
from .utils import to_id

ALGO = "HS256"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def create_access_token(user_id: str, expires_hours: Optional[int] = None) -> str:
    """Sólo para scripts y tests; en producción los firma el servicio de auth."""
    settings = get_settings()
    hours = expires_hours or settings.jwt_expires_hours
    claims = {"sub": user_id, "exp": datetime.now(timezone.utc) + timedelta(hours=hours)}
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGO)


def decode_subject(token: str) -> str:
    try:
        claims = jwt.decode(token, get_settings().jwt_secret, algorithms=[ALGO])
    except JWTError:
        raise _unauthorized()
    sub = claims.get("sub")
    if not sub:
        raise _unauthorized()
    return str(sub)


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    return decode_subject(token)


async def get_current_user(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    if not ObjectId.is_valid(user_id):
        raise _unauthorized()
    doc = await db.users.find_one({"_id": ObjectId(user_id)})
    if not doc:
        raise _unauthorized("User not found")
    user = to_id(doc)
    user.setdefault("role", "user")
    return user
