# rentspace/utils.py
from typing import Any, Dict, Optional
from bson import ObjectId
from datetime import date, datetime, timezone

# ==================== Serialización de documentos ====================

def _plain(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return to_id(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value

def to_id(doc: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Documento de Mongo -> dict serializable: `_id` pasa a `id` y los
    ObjectId/datetime anidados (reservas, extensiones, check-in...) a string.
    Si doc es None, devuelve {}.
    """
    if doc is None:
        return {}
    out = {k: _plain(v) for k, v in doc.items() if k != "_id"}
    if "_id" in doc:
        out["id"] = str(doc["_id"])
    return out

# ==================== Fechas ====================

def utcnow() -> datetime:
    """Hora actual en UTC sin tzinfo, igual que lo que devuelve Motor."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def to_naive_utc(value: datetime) -> datetime:
    """
    Normaliza un datetime a UTC naive. Los que llegan sin zona se asumen UTC.
    Mongo guarda naive, así que todas las comparaciones se hacen así.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def as_date(value: Any) -> date:
    """Acepta date, datetime o string ISO y devuelve la fecha de calendario."""
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    if isinstance(value, date):
        return value
    return to_naive_utc(datetime.fromisoformat(str(value))).date()
