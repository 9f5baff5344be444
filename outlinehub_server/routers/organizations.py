# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Organization API routes: create and list organizations, manage members and invitations."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from outlinehub_server.api.schemas import (
    InvitationResponse,
    InviteRequest,
    InviteResponse,
    MemberResponse,
    MembershipResponse,
    OrganizationCreate,
    OrganizationResponse,
    SuccessResponse,
    UserOrganizationResponse,
)
from outlinehub_server.auth import get_current_user
from outlinehub_server.database import get_db
from outlinehub_server.models import User
from outlinehub_server.services import invitations, organizations

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get("", response_model=list[UserOrganizationResponse])
async def list_organizations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[UserOrganizationResponse]:
    """Organizations the current user belongs to, with their role in each."""
    rows = await organizations.list_user_organizations(db, user.id)
    return [
        UserOrganizationResponse(
            id=org.id,
            name=org.name,
            slug=org.slug,
            created_at=org.created_at,
            role=role,
        )
        for org, role in rows
    ]


@router.post("", response_model=OrganizationResponse)
async def create_organization(
    data: OrganizationCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrganizationResponse:
    """Create an organization owned by the current user."""
    org = await organizations.create_organization(db, user.id, data.name)
    await db.refresh(org)
    return OrganizationResponse.model_validate(org)


@router.get("/me", response_model=MembershipResponse)
async def get_my_membership(
    org_id: int = Query(..., description="Organization id"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MembershipResponse:
    """Current user's membership (role) in an organization."""
    membership = await organizations.require_membership(db, user.id, org_id)
    return MembershipResponse.model_validate(membership)


@router.get("/members", response_model=list[MemberResponse])
async def list_members(
    org_id: int = Query(..., description="Organization id"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[MemberResponse]:
    """Members of an organization. Members only."""
    rows = await organizations.list_members(db, user.id, org_id)
    return [
        MemberResponse(
            id=m.id,
            user_id=u.id,
            email=u.email,
            name=u.name,
            role=m.role,
            joined_at=m.created_at,
        )
        for m, u in rows
    ]


@router.post("/members", response_model=InviteResponse, response_model_exclude_none=True)
async def invite_member(
    data: InviteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> InviteResponse:
    """Invite an email address to an organization. Owner only."""
    result = await invitations.invite_member(db, user, data.organization_id, data.email, data.role)
    out = InviteResponse(message=result.message, outcome=result.outcome.value)
    if result.invitation is not None:
        out.invitation_id = result.invitation.id
        out.expires_at = result.invitation.expires_at
    if result.email is not None:
        out.email_sent = result.email.sent
        out.email_error = result.email.error
    return out


@router.delete("/members/{membership_id}", response_model=SuccessResponse)
async def remove_member(
    membership_id: int,
    org_id: int = Query(..., description="Organization id"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    """Remove a member from an organization. Owner only; owners cannot be removed."""
    await organizations.remove_member(db, user.id, org_id, membership_id)
    return SuccessResponse()


@router.get("/invitations", response_model=list[InvitationResponse])
async def list_invitations(
    org_id: int = Query(..., description="Organization id"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[InvitationResponse]:
    """Pending invitations of an organization. Owner only."""
    rows = await invitations.list_pending_invitations(db, user.id, org_id)
    return [InvitationResponse.model_validate(inv) for inv in rows]
