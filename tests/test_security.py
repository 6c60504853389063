import pytest
from fastapi import HTTPException
from jose import jwt

from rentspace.config import get_settings
from rentspace.security import ALGO, create_access_token, get_current_user_id

@pytest.mark.asyncio
async def test_token_roundtrip():
    token = create_access_token("65a1b2c3d4e5f60718293a4b")
    assert await get_current_user_id(token) == "65a1b2c3d4e5f60718293a4b"

@pytest.mark.asyncio
async def test_invalid_token_rejected():
    with pytest.raises(HTTPException) as exc:
        await get_current_user_id("not-a-jwt")
    assert exc.value.status_code == 401

@pytest.mark.asyncio
async def test_token_without_subject_rejected():
    token = jwt.encode({"foo": "bar"}, get_settings().jwt_secret, algorithm=ALGO)
    with pytest.raises(HTTPException) as exc:
        await get_current_user_id(token)
    assert exc.value.status_code == 401

@pytest.mark.asyncio
async def test_token_signed_with_other_secret_rejected():
    token = jwt.encode({"sub": "abc"}, "another-secret", algorithm=ALGO)
    with pytest.raises(HTTPException):
        await get_current_user_id(token)

@pytest.mark.asyncio
async def test_bookings_require_token():
    from httpx import AsyncClient, ASGITransport
    from rentspace.db import get_db
    from rentspace.dependencies import get_booking_service
    from rentspace.main import app

    # Sin base de datos real: el 401 sale antes de tocarla
    app.dependency_overrides[get_db] = lambda: None
    app.dependency_overrides[get_booking_service] = lambda: None
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            r = await ac.get("/bookings")
            assert r.status_code == 401
            r = await ac.get("/bookings", headers={"Authorization": "Bearer nope"})
            assert r.status_code == 401
    finally:
        app.dependency_overrides.clear()
