# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Organization endpoint tests, including the invite-and-accept flows end to end."""

from httpx import AsyncClient
from sqlalchemy import func, select

from outlinehub_server.models import Invitation, Membership


async def _create_org(client: AsyncClient, headers: dict, name: str = "Acme") -> dict:
    r = await client.post("/api/v1/organizations", json={"name": name}, headers=headers)
    assert r.status_code == 200
    return r.json()


async def test_requires_session(client: AsyncClient):
    r = await client.get("/api/v1/organizations")
    assert r.status_code == 401
    r = await client.post("/api/v1/organizations", json={"name": "Acme"})
    assert r.status_code == 401


async def test_create_and_list_organizations(client: AsyncClient, make_user, headers_for):
    owner = await make_user("owner@x.com")
    h = headers_for(owner)

    org = await _create_org(client, h, "Acme Corp")
    assert org["slug"] == "acme-corp"

    r = await client.get("/api/v1/organizations", headers=h)
    assert [(o["id"], o["role"]) for o in r.json()] == [(org["id"], "owner")]

    r = await client.get("/api/v1/organizations/me", params={"org_id": org["id"]}, headers=h)
    assert r.json()["role"] == "owner"


async def test_create_organization_blank_name(client: AsyncClient, make_user, headers_for):
    owner = await make_user("owner@x.com")
    r = await client.post("/api/v1/organizations", json={"name": " "}, headers=headers_for(owner))
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_request"


async def test_membership_lookup_for_outsider(client: AsyncClient, make_user, headers_for):
    owner = await make_user("owner@x.com")
    outsider = await make_user("outsider@x.com")
    org = await _create_org(client, headers_for(owner))

    r = await client.get("/api/v1/organizations/me", params={"org_id": org["id"]}, headers=headers_for(outsider))
    assert r.status_code == 403
    r = await client.get("/api/v1/organizations/members", params={"org_id": org["id"]}, headers=headers_for(outsider))
    assert r.status_code == 403


async def test_new_user_invite_and_accept(client: AsyncClient, session_maker, make_user, headers_for, outbox):
    owner = await make_user("owner@x.com")
    org = await _create_org(client, headers_for(owner))

    r = await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "new@x.com", "role": "member"},
        headers=headers_for(owner),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["outcome"] == "invitation_created"
    assert body["email_sent"] is True
    assert "email_error" not in body
    invitation_id = body["invitation_id"]
    assert f"/invite/{invitation_id}" in outbox.messages[0]["text"]

    pending = await client.get("/api/v1/organizations/invitations", params={"org_id": org["id"]}, headers=headers_for(owner))
    assert [i["email"] for i in pending.json()] == ["new@x.com"]

    invitee = await make_user("new@x.com")
    details = await client.get(f"/api/v1/organizations/invite/{invitation_id}", headers=headers_for(invitee))
    assert details.status_code == 200
    assert details.json()["organization"]["name"] == "Acme"
    assert details.json()["invitation"]["status"] == "pending"

    r = await client.post(f"/api/v1/organizations/invite/{invitation_id}/accept", headers=headers_for(invitee))
    assert r.status_code == 200
    assert r.json()["outcome"] == "accepted"
    assert r.json()["role"] == "member"

    members = await client.get("/api/v1/organizations/members", params={"org_id": org["id"]}, headers=headers_for(invitee))
    assert sorted((m["email"], m["role"]) for m in members.json()) == [("new@x.com", "member"), ("owner@x.com", "owner")]

    again = await client.post(f"/api/v1/organizations/invite/{invitation_id}/accept", headers=headers_for(invitee))
    assert again.status_code == 409
    assert again.json()["code"] == "already_processed"
    async with session_maker() as s:
        assert await s.scalar(select(func.count()).select_from(Membership)) == 2
        assert (await s.get(Invitation, invitation_id)).status.value == "accepted"


async def test_existing_user_is_added_directly(client: AsyncClient, session_maker, make_user, headers_for, outbox):
    owner = await make_user("owner@x.com")
    await make_user("existing@x.com")
    org = await _create_org(client, headers_for(owner))

    r = await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "existing@x.com"},
        headers=headers_for(owner),
    )
    assert r.json()["outcome"] == "member_added"
    assert "invitation_id" not in r.json()
    assert outbox.messages == []
    async with session_maker() as s:
        assert await s.scalar(select(func.count()).select_from(Invitation)) == 0


async def test_invite_second_owner_rejected(client: AsyncClient, session_maker, make_user, headers_for):
    owner = await make_user("owner@x.com")
    org = await _create_org(client, headers_for(owner))

    r = await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "new@x.com", "role": "owner"},
        headers=headers_for(owner),
    )
    assert r.status_code == 400
    assert r.json() == {"detail": "Each organization may have only one owner", "code": "invalid_request"}
    async with session_maker() as s:
        assert await s.scalar(select(func.count()).select_from(Invitation)) == 0


async def test_invite_reports_email_failure(client: AsyncClient, make_user, headers_for, outbox):
    owner = await make_user("owner@x.com")
    org = await _create_org(client, headers_for(owner))
    outbox.fail = "domain is not verified"

    r = await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "new@x.com"},
        headers=headers_for(owner),
    )
    assert r.status_code == 200
    assert r.json()["email_sent"] is False
    assert r.json()["email_error"] == "domain is not verified"
    assert r.json()["invitation_id"]


async def test_member_cannot_invite(client: AsyncClient, make_user, headers_for):
    owner = await make_user("owner@x.com")
    member = await make_user("member@x.com")
    org = await _create_org(client, headers_for(owner))
    await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "member@x.com"},
        headers=headers_for(owner),
    )

    r = await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "other@x.com"},
        headers=headers_for(member),
    )
    assert r.status_code == 403
    assert r.json()["code"] == "forbidden"


async def test_accept_with_wrong_account(client: AsyncClient, make_user, headers_for):
    owner = await make_user("owner@x.com")
    other = await make_user("other@x.com")
    org = await _create_org(client, headers_for(owner))
    r = await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "new@x.com"},
        headers=headers_for(owner),
    )
    invitation_id = r.json()["invitation_id"]

    r = await client.post("/api/v1/organizations/join", json={"token": invitation_id}, headers=headers_for(other))
    assert r.status_code == 403
    assert r.json()["code"] == "email_mismatch"


async def test_join_with_token(client: AsyncClient, make_user, headers_for):
    owner = await make_user("owner@x.com")
    org = await _create_org(client, headers_for(owner))
    r = await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "new@x.com"},
        headers=headers_for(owner),
    )
    invitee = await make_user("new@x.com")

    r = await client.post(
        "/api/v1/organizations/join", json={"token": r.json()["invitation_id"]}, headers=headers_for(invitee)
    )
    assert r.status_code == 200
    assert r.json()["organization_id"] == org["id"]


async def test_unknown_invitation(client: AsyncClient, make_user, headers_for):
    user = await make_user("a@x.com")
    r = await client.get("/api/v1/organizations/invite/nope", headers=headers_for(user))
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


async def test_remove_member_flow(client: AsyncClient, make_user, headers_for):
    owner = await make_user("owner@x.com")
    await make_user("member@x.com")
    org = await _create_org(client, headers_for(owner))
    await client.post(
        "/api/v1/organizations/members",
        json={"organization_id": org["id"], "email": "member@x.com"},
        headers=headers_for(owner),
    )
    members = await client.get("/api/v1/organizations/members", params={"org_id": org["id"]}, headers=headers_for(owner))
    by_role = {m["role"]: m["id"] for m in members.json()}

    r = await client.delete(
        f"/api/v1/organizations/members/{by_role['owner']}", params={"org_id": org["id"]}, headers=headers_for(owner)
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Cannot remove organization owners"

    r = await client.delete(
        f"/api/v1/organizations/members/{by_role['member']}", params={"org_id": org["id"]}, headers=headers_for(owner)
    )
    assert r.status_code == 200
    members = await client.get("/api/v1/organizations/members", params={"org_id": org["id"]}, headers=headers_for(owner))
    assert [m["role"] for m in members.json()] == ["owner"]
