# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Auth endpoint tests: sign-up, email verification, sign-in, session and sign-out."""

from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy import select

from outlinehub_server.config import settings
from outlinehub_server.models import User, VerificationToken
from outlinehub_server.models.timestamp import utcnow
from outlinehub_server.routers import auth as auth_router

from conftest import PASSWORD


async def _token_for(session_maker, email: str) -> str:
    async with session_maker() as s:
        result = await s.execute(select(VerificationToken).where(VerificationToken.identifier == email))
        return result.scalar_one().value


async def test_sign_up_sends_verification_email(client: AsyncClient, session_maker, outbox):
    r = await client.post(
        "/api/v1/auth/sign-up",
        json={"email": "New@Example.com", "password": PASSWORD},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["requires_verification"] is True
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["name"] == "new"
    assert data["user"]["email_verified"] is False

    token = await _token_for(session_maker, "new@example.com")
    assert len(outbox.messages) == 1
    assert outbox.messages[0]["to"] == "new@example.com"
    assert f"/verify-email?token={token}" in outbox.messages[0]["text"]


async def test_sign_up_survives_email_failure(client: AsyncClient, outbox):
    outbox.fail = "provider down"
    r = await client.post("/api/v1/auth/sign-up", json={"email": "a@example.com", "password": PASSWORD})
    assert r.status_code == 200


async def test_sign_up_duplicate_email(client: AsyncClient, make_user):
    await make_user("taken@example.com")
    r = await client.post("/api/v1/auth/sign-up", json={"email": "TAKEN@example.com", "password": PASSWORD})
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"


async def test_sign_up_race_on_same_email(client: AsyncClient, session_maker, make_user, monkeypatch):
    await make_user("taken@example.com")

    async def not_found(db, email):
        return None

    monkeypatch.setattr(auth_router, "_get_user_by_email", not_found)
    r = await client.post("/api/v1/auth/sign-up", json={"email": "taken@example.com", "password": PASSWORD})

    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"
    async with session_maker() as s:
        users = (await s.execute(select(User).where(User.email == "taken@example.com"))).scalars().all()
        assert len(users) == 1
        assert await s.scalar(select(VerificationToken.id)) is None


async def test_sign_up_without_verification(client: AsyncClient, outbox, monkeypatch):
    monkeypatch.setattr(settings, "require_email_verification", False)
    r = await client.post("/api/v1/auth/sign-up", json={"email": "a@example.com", "password": PASSWORD})
    assert r.json()["user"]["email_verified"] is True
    assert outbox.messages == []
    r = await client.post("/api/v1/auth/sign-in", json={"email": "a@example.com", "password": PASSWORD})
    assert r.status_code == 200


async def test_verify_then_sign_in_and_session(client: AsyncClient, session_maker):
    await client.post("/api/v1/auth/sign-up", json={"email": "a@example.com", "password": PASSWORD, "name": "Ann"})

    before = await client.post("/api/v1/auth/sign-in", json={"email": "a@example.com", "password": PASSWORD})
    assert before.status_code == 403

    token = await _token_for(session_maker, "a@example.com")
    r = await client.get("/api/v1/auth/verify-email", params={"token": token})
    assert r.status_code == 200
    assert r.json()["already_verified"] is False

    # Single use
    again = await client.get("/api/v1/auth/verify-email", params={"token": token})
    assert again.status_code == 400

    r = await client.post("/api/v1/auth/sign-in", json={"email": "a@example.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["access_token"]
    assert settings.session_cookie_name in r.cookies

    session = await client.get("/api/v1/auth/session")
    assert session.json()["user"]["name"] == "Ann"

    out = await client.post("/api/v1/auth/sign-out")
    assert out.json() == {"success": True}
    assert "Max-Age=0" in out.headers["set-cookie"]
    client.cookies.clear()
    session = await client.get("/api/v1/auth/session")
    assert session.json() == {"user": None}


async def test_verify_expired_token_is_deleted(client: AsyncClient, session_maker, make_user):
    await make_user("a@example.com", verified=False)
    async with session_maker() as s:
        s.add(VerificationToken(identifier="a@example.com", value="expired-token", expires_at=utcnow() - timedelta(hours=1)))
        await s.commit()

    r = await client.get("/api/v1/auth/verify-email", params={"token": "expired-token"})
    assert r.status_code == 400
    assert "expired" in r.json()["detail"]
    async with session_maker() as s:
        assert (await s.execute(select(VerificationToken))).first() is None
        user = (await s.execute(select(User).where(User.email == "a@example.com"))).scalar_one()
        assert user.email_verified is False


async def test_verify_already_verified(client: AsyncClient, session_maker, make_user):
    await make_user("a@example.com", verified=True)
    async with session_maker() as s:
        s.add(VerificationToken(identifier="a@example.com", value="tok", expires_at=utcnow() + timedelta(hours=1)))
        await s.commit()

    r = await client.get("/api/v1/auth/verify-email", params={"token": "tok"})
    assert r.status_code == 200
    assert r.json()["already_verified"] is True
    async with session_maker() as s:
        assert (await s.execute(select(VerificationToken))).first() is None


async def test_verify_requires_token(client: AsyncClient):
    r = await client.get("/api/v1/auth/verify-email")
    assert r.status_code == 400


async def test_sign_in_invalid_credentials(client: AsyncClient, make_user):
    await make_user("a@example.com")
    r = await client.post("/api/v1/auth/sign-in", json={"email": "a@example.com", "password": "wrong-password"})
    assert r.status_code == 401
    r = await client.post("/api/v1/auth/sign-in", json={"email": "nobody@example.com", "password": PASSWORD})
    assert r.status_code == 401


async def test_session_with_bearer_token(client: AsyncClient, make_user, headers_for):
    user = await make_user("a@example.com")
    r = await client.get("/api/v1/auth/session", headers=headers_for(user))
    assert r.json()["user"]["id"] == user.id
    r = await client.get("/api/v1/auth/session", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.json() == {"user": None}


async def test_sign_in_rate_limited(client: AsyncClient):
    statuses = []
    for _ in range(11):
        r = await client.post("/api/v1/auth/sign-in", json={"email": "x@example.com", "password": "nope"})
        statuses.append(r.status_code)
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
