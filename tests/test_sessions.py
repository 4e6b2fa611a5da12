"""Tests for session listing and revocation."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from authcore.core.auth import hash_refresh_token
from authcore.db.session import async_session_maker
from authcore.models.refresh_token import RefreshToken
from conftest import SAFARI_ON_IPHONE, bearer, create_user, login

SESSIONS_URL = "/api/v1/auth/sessions"


async def _two_devices(client: AsyncClient) -> tuple[dict, dict]:
    await create_user(email="multi@test.com")
    desktop = (await login(client, "multi@test.com")).json()["data"]
    phone = (await login(client, "multi@test.com", headers={"User-Agent": SAFARI_ON_IPHONE})).json()["data"]
    return desktop, phone


async def _is_revoked(refresh_token: str) -> bool:
    async with async_session_maker() as session:
        r = await session.execute(
            select(RefreshToken.is_revoked).where(RefreshToken.token_hash == hash_refresh_token(refresh_token))
        )
        return r.scalar_one()


@pytest.mark.asyncio
async def test_list_sessions(client: AsyncClient, clean_db):
    desktop, phone = await _two_devices(client)

    resp = await client.get(SESSIONS_URL, headers=bearer(desktop["accessToken"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Sessions retrieved successfully"
    assert body["meta"]["total_sessions"] == 2
    by_id = {s["id"]: s for s in body["data"]}
    assert set(by_id) == {desktop["sessionId"], phone["sessionId"]}
    assert by_id[desktop["sessionId"]]["isCurrent"] is True
    assert by_id[phone["sessionId"]]["isCurrent"] is False
    assert by_id[desktop["sessionId"]]["deviceName"] == "Chrome on Windows"
    assert by_id[desktop["sessionId"]]["deviceType"] == "desktop"
    assert by_id[phone["sessionId"]]["deviceType"] == "mobile"
    # The listing request itself counts as activity on the current session
    assert body["data"][0]["id"] == desktop["sessionId"]


@pytest.mark.asyncio
async def test_list_sessions_requires_authentication(client: AsyncClient, clean_db):
    resp = await client.get(SESSIONS_URL)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_revoke_session(client: AsyncClient, clean_db):
    desktop, phone = await _two_devices(client)
    headers = bearer(desktop["accessToken"])

    resp = await client.request(
        "DELETE", f"{SESSIONS_URL}/revoke", json={"sessionId": phone["sessionId"]}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "Session revoked successfully"
    assert await _is_revoked(phone["refreshToken"]) is True
    assert await _is_revoked(desktop["refreshToken"]) is False

    listed = (await client.get(SESSIONS_URL, headers=headers)).json()["data"]
    assert [s["id"] for s in listed] == [desktop["sessionId"]]

    again = await client.request(
        "DELETE", f"{SESSIONS_URL}/revoke", json={"sessionId": phone["sessionId"]}, headers=headers
    )
    assert again.status_code == 400
    assert again.json()["message"] == "Session not found or already revoked"

    refresh = await client.post("/api/v1/auth/refresh", json={"refreshToken": phone["refreshToken"]})
    assert refresh.status_code == 401


@pytest.mark.asyncio
async def test_revoke_session_of_another_user_is_not_found(client: AsyncClient, clean_db):
    _, phone = await _two_devices(client)
    await create_user(email="other@test.com")
    other = (await login(client, "other@test.com")).json()["data"]

    resp = await client.request(
        "DELETE",
        f"{SESSIONS_URL}/revoke",
        json={"sessionId": phone["sessionId"]},
        headers=bearer(other["accessToken"]),
    )
    assert resp.status_code == 400
    assert await _is_revoked(phone["refreshToken"]) is False


@pytest.mark.asyncio
async def test_revoke_session_rejects_non_uuid(client: AsyncClient, clean_db):
    desktop, _ = await _two_devices(client)
    resp = await client.request(
        "DELETE", f"{SESSIONS_URL}/revoke", json={"sessionId": "nope"}, headers=bearer(desktop["accessToken"])
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Validation failed"


@pytest.mark.asyncio
async def test_revoke_other_sessions_defaults_to_current(client: AsyncClient, clean_db):
    desktop, phone = await _two_devices(client)
    headers = bearer(desktop["accessToken"])

    resp = await client.request("DELETE", f"{SESSIONS_URL}/revoke-others", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "All other sessions revoked successfully"
    assert body["data"] == {"revoked_count": 1}

    listed = (await client.get(SESSIONS_URL, headers=headers)).json()["data"]
    assert [s["id"] for s in listed] == [desktop["sessionId"]]
    assert await _is_revoked(phone["refreshToken"]) is True


@pytest.mark.asyncio
async def test_revoke_other_sessions_with_explicit_keep(client: AsyncClient, clean_db):
    desktop, phone = await _two_devices(client)

    resp = await client.request(
        "DELETE",
        f"{SESSIONS_URL}/revoke-others",
        json={"currentSessionId": phone["sessionId"]},
        headers=bearer(desktop["accessToken"]),
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"revoked_count": 1}
    assert await _is_revoked(desktop["refreshToken"]) is True
    assert await _is_revoked(phone["refreshToken"]) is False


@pytest.mark.asyncio
async def test_logout_all_devices(client: AsyncClient, clean_db):
    desktop, phone = await _two_devices(client)
    headers = bearer(desktop["accessToken"])

    resp = await client.request("DELETE", f"{SESSIONS_URL}/logout-all", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Logged out from all devices successfully"
    assert body["data"] == {"revoked_count": 2}
    assert await _is_revoked(desktop["refreshToken"]) is True
    assert await _is_revoked(phone["refreshToken"]) is True

    # Access tokens stay valid until they expire; only the session list is empty
    listed = await client.get(SESSIONS_URL, headers=headers)
    assert listed.status_code == 200
    assert listed.json()["data"] == []
    assert listed.json()["meta"]["total_sessions"] == 0
