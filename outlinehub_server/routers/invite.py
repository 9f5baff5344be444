# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Invite API - look up and accept an organization invitation from an email link."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from outlinehub_server.api.schemas import (
    AcceptInvitationResponse,
    InvitationDetailsResponse,
    InvitationResponse,
    JoinRequest,
    OrganizationResponse,
)
from outlinehub_server.auth import get_current_user
from outlinehub_server.database import get_db
from outlinehub_server.models import User
from outlinehub_server.services import invitations

router = APIRouter(prefix="/organizations", tags=["invite"])


@router.get("/invite/{invitation_id}", response_model=InvitationDetailsResponse)
async def get_invitation(
    invitation_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> InvitationDetailsResponse:
    """Invitation and organization shown before accepting. Expired invitations are deleted."""
    details = await invitations.get_invitation_details(db, invitation_id)
    return InvitationDetailsResponse(
        invitation=InvitationResponse.model_validate(details.invitation),
        organization=OrganizationResponse.model_validate(details.organization),
    )


async def _accept(db: AsyncSession, user: User, invitation_id: str) -> AcceptInvitationResponse:
    result = await invitations.accept_invitation(db, user, invitation_id)
    return AcceptInvitationResponse(
        message=result.message,
        outcome=result.outcome.value,
        organization_id=result.organization_id,
        role=result.role,
    )


@router.post("/invite/{invitation_id}/accept", response_model=AcceptInvitationResponse)
async def accept_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AcceptInvitationResponse:
    """Accept an invitation as the signed-in user."""
    return await _accept(db, user, invitation_id)


@router.post("/join", response_model=AcceptInvitationResponse)
async def join_organization(
    body: JoinRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AcceptInvitationResponse:
    """Accept an invitation whose token was pasted in the join form."""
    return await _accept(db, user, body.token.strip())
