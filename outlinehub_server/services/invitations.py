# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Organization invitations: invite by email, look up, and accept.

Inviting an address that already has an account adds the membership directly.
Any other address gets one Invitation row per (email, organization) whose id is
the bearer token of the acceptance link. Re-inviting refreshes that row.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from outlinehub_server.config import settings
from outlinehub_server.models import Invitation, InvitationStatus, MemberRole, Membership, Organization, User
from outlinehub_server.models.timestamp import as_utc, utcnow
from outlinehub_server.services import email as email_service
from outlinehub_server.services.email import EmailResult
from outlinehub_server.services.errors import (
    AlreadyProcessed,
    EmailMismatch,
    ExpiredInvitation,
    InvalidRequest,
    NotFound,
)
from outlinehub_server.services.organizations import (
    add_membership,
    get_membership,
    get_owner_membership,
    require_owner,
)

logger = logging.getLogger(__name__)

SINGLE_OWNER_MESSAGE = "Each organization may have only one owner"


class InviteOutcome(str, enum.Enum):
    MEMBER_ADDED = "member_added"
    ALREADY_MEMBER = "already_member"
    INVITATION_CREATED = "invitation_created"
    INVITATION_UPDATED = "invitation_updated"


class AcceptOutcome(str, enum.Enum):
    ACCEPTED = "accepted"
    ALREADY_MEMBER = "already_member"


@dataclass
class InviteResult:
    outcome: InviteOutcome
    message: str
    invitation: Invitation | None = None
    email: EmailResult | None = None


@dataclass
class AcceptResult:
    outcome: AcceptOutcome
    message: str
    organization_id: int
    role: MemberRole


@dataclass
class InvitationDetails:
    invitation: Invitation
    organization: Organization


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def invitation_expiry():
    return utcnow() + timedelta(days=settings.invitation_expire_days)


async def _get_invitation_for(db: AsyncSession, email: str, organization_id: int) -> Invitation | None:
    result = await db.execute(
        select(Invitation).where(
            Invitation.email == email,
            Invitation.organization_id == organization_id,
        )
    )
    return result.scalar_one_or_none()


def _refresh(invitation: Invitation, role: MemberRole, invited_by_id: int) -> None:
    invitation.role = role
    invitation.expires_at = invitation_expiry()
    invitation.status = InvitationStatus.PENDING
    invitation.invited_by_id = invited_by_id


async def _add_existing_user(
    db: AsyncSession, user: User, organization_id: int, role: MemberRole
) -> InviteResult:
    if await get_membership(db, user.id, organization_id) is not None:
        return InviteResult(InviteOutcome.ALREADY_MEMBER, "User is already a member of this organization")
    membership = await add_membership(db, user.id, organization_id, role)
    if membership is None:
        # Lost a race: either the same membership or another owner was inserted meanwhile
        if await get_membership(db, user.id, organization_id) is not None:
            return InviteResult(InviteOutcome.ALREADY_MEMBER, "User is already a member of this organization")
        raise InvalidRequest(SINGLE_OWNER_MESSAGE)
    await db.commit()
    logger.info("User %s added to organization %s as %s", user.id, organization_id, role.value)
    return InviteResult(InviteOutcome.MEMBER_ADDED, "Member added successfully")


async def _upsert_invitation(
    db: AsyncSession, email: str, organization_id: int, role: MemberRole, invited_by_id: int
) -> tuple[Invitation, InviteOutcome]:
    invitation = await _get_invitation_for(db, email, organization_id)
    if invitation is not None:
        _refresh(invitation, role, invited_by_id)
        outcome = InviteOutcome.INVITATION_UPDATED
    else:
        invitation = Invitation(
            email=email,
            organization_id=organization_id,
            role=role,
            status=InvitationStatus.PENDING,
            expires_at=invitation_expiry(),
            invited_by_id=invited_by_id,
        )
        try:
            async with db.begin_nested():
                db.add(invitation)
            outcome = InviteOutcome.INVITATION_CREATED
        except IntegrityError:
            # A concurrent invite created the row first
            invitation = await _get_invitation_for(db, email, organization_id)
            if invitation is None:
                raise
            _refresh(invitation, role, invited_by_id)
            outcome = InviteOutcome.INVITATION_UPDATED
    await db.commit()
    logger.info(
        "Invitation %s for %s to organization %s (%s, role=%s)",
        invitation.id, email, organization_id, outcome.value, role.value,
    )
    return invitation, outcome


async def invite_member(
    db: AsyncSession,
    requester: User,
    organization_id: int,
    email: str,
    role: MemberRole = MemberRole.MEMBER,
) -> InviteResult:
    """
    Offer membership of an organization to an email address. Owner only.

    Existing accounts are added directly and get no email. Other addresses get a
    pending invitation (created or refreshed) and an email with the acceptance
    link. Email failure does not undo the invitation; it is reported on the result.
    """
    await require_owner(db, requester.id, organization_id)
    email = normalize_email(email)
    if not email:
        raise InvalidRequest("Email is required")
    if role == MemberRole.OWNER and await get_owner_membership(db, organization_id) is not None:
        raise InvalidRequest(SINGLE_OWNER_MESSAGE)

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is not None:
        return await _add_existing_user(db, user, organization_id, role)

    invitation, outcome = await _upsert_invitation(db, email, organization_id, role, requester.id)
    delivery = await email_service.send_invitation_email(
        email, invitation.id, inviter_name=requester.name, inviter_email=requester.email
    )
    if delivery.sent:
        message = "Invitation sent" if outcome == InviteOutcome.INVITATION_CREATED else "Invitation resent"
    else:
        message = "Invitation saved, but the email could not be sent. Share the invitation link manually."
    return InviteResult(outcome, message, invitation=invitation, email=delivery)


async def _load_pending(db: AsyncSession, invitation_id: str) -> Invitation:
    """Fetch an invitation that can still be accepted. Expired rows are deleted on sight."""
    invitation = await db.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFound("Invitation not found")
    if as_utc(invitation.expires_at) < utcnow():
        await db.delete(invitation)
        await db.commit()
        logger.info("Deleted expired invitation %s for %s", invitation_id, invitation.email)
        raise ExpiredInvitation("This invitation has expired. Ask the organization owner for a new invite.")
    if invitation.status != InvitationStatus.PENDING:
        raise AlreadyProcessed("This invitation has already been processed")
    return invitation


async def get_invitation_details(db: AsyncSession, invitation_id: str) -> InvitationDetails:
    """Invitation and organization for display before acceptance."""
    invitation = await _load_pending(db, invitation_id)
    organization = await db.get(Organization, invitation.organization_id)
    if organization is None:
        raise NotFound("Invitation not found")
    return InvitationDetails(invitation=invitation, organization=organization)


async def accept_invitation(db: AsyncSession, requester: User, invitation_id: str) -> AcceptResult:
    """
    Turn a pending invitation into a membership for the signed-in user.
    The membership insert and the status change commit together.
    """
    invitation = await _load_pending(db, invitation_id)
    if normalize_email(requester.email) != normalize_email(invitation.email):
        raise EmailMismatch(
            "This invitation was sent to a different email address. "
            "Sign out and sign up with the invited address to accept it."
        )
    organization_id = invitation.organization_id

    membership: Membership | None = await get_membership(db, requester.id, organization_id)
    already_member = membership is not None
    if not already_member:
        membership = await add_membership(db, requester.id, organization_id, invitation.role)
        if membership is None:
            membership = await get_membership(db, requester.id, organization_id)
            if membership is None:
                await db.rollback()
                raise InvalidRequest(SINGLE_OWNER_MESSAGE)
            already_member = True

    invitation.status = InvitationStatus.ACCEPTED
    await db.commit()
    if already_member:
        return AcceptResult(
            AcceptOutcome.ALREADY_MEMBER,
            "You are already a member of this organization",
            organization_id,
            membership.role,
        )
    logger.info("User %s accepted invitation %s to organization %s", requester.id, invitation_id, organization_id)
    return AcceptResult(AcceptOutcome.ACCEPTED, "Invitation accepted", organization_id, membership.role)


async def list_pending_invitations(
    db: AsyncSession, requester_id: int, organization_id: int
) -> list[Invitation]:
    """Pending, unexpired invitations of an organization. Owner only."""
    await require_owner(db, requester_id, organization_id)
    result = await db.execute(
        select(Invitation)
        .where(
            Invitation.organization_id == organization_id,
            Invitation.status == InvitationStatus.PENDING,
            Invitation.expires_at > utcnow(),
        )
        .order_by(Invitation.created_at.desc())
    )
    return list(result.scalars().all())
