# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Organizations and memberships: creation, role checks, listing and removal."""

import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from outlinehub_server.models import MemberRole, Membership, Organization, User
from outlinehub_server.services.errors import Forbidden, InvalidRequest, NotFound

logger = logging.getLogger(__name__)

SLUG_MAX_LENGTH = 50


def slugify(name: str) -> str:
    """URL-safe slug: lowercase, non-alphanumeric runs become one hyphen, edges trimmed, max 50 chars."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH]


async def get_membership(db: AsyncSession, user_id: int, organization_id: int) -> Membership | None:
    result = await db.execute(
        select(Membership).where(
            Membership.user_id == user_id,
            Membership.organization_id == organization_id,
        )
    )
    return result.scalar_one_or_none()


async def get_owner_membership(db: AsyncSession, organization_id: int) -> Membership | None:
    result = await db.execute(
        select(Membership).where(
            Membership.organization_id == organization_id,
            Membership.role == MemberRole.OWNER,
        )
    )
    return result.scalar_one_or_none()


async def require_membership(db: AsyncSession, user_id: int, organization_id: int) -> Membership:
    """Raise Forbidden unless the user belongs to the organization."""
    membership = await get_membership(db, user_id, organization_id)
    if membership is None:
        raise Forbidden("You are not a member of this organization")
    return membership


async def require_owner(db: AsyncSession, user_id: int, organization_id: int) -> Membership:
    """Raise Forbidden unless the user owns the organization."""
    membership = await get_membership(db, user_id, organization_id)
    if membership is None or membership.role != MemberRole.OWNER:
        raise Forbidden("Only the organization owner can manage members")
    return membership


async def add_membership(
    db: AsyncSession,
    user_id: int,
    organization_id: int,
    role: MemberRole,
) -> Membership | None:
    """
    Insert a membership inside a SAVEPOINT and flush it.
    Returns None when a unique index rejects the row: the user is already a member,
    or an owner is being added to an organization that already has one.
    The caller commits.
    """
    membership = Membership(user_id=user_id, organization_id=organization_id, role=role)
    try:
        async with db.begin_nested():
            db.add(membership)
    except IntegrityError:
        logger.info(
            "Membership insert rejected by constraint: user=%s org=%s role=%s",
            user_id, organization_id, role.value,
        )
        return None
    return membership


async def create_organization(db: AsyncSession, creator_user_id: int, name: str) -> Organization:
    """Create an organization and its owner membership in one transaction."""
    name = (name or "").strip()
    if not name:
        raise InvalidRequest("Organization name is required")
    organization = Organization(name=name, slug=slugify(name))
    try:
        db.add(organization)
        await db.flush()
        owner = await add_membership(db, creator_user_id, organization.id, MemberRole.OWNER)
        if owner is None:
            raise InvalidRequest("Could not assign the organization owner")
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Organization %s (%s) created by user %s", organization.id, organization.slug, creator_user_id)
    return organization


async def list_user_organizations(db: AsyncSession, user_id: int) -> list[tuple[Organization, MemberRole]]:
    """Organizations the user belongs to, with the user's role, oldest first."""
    result = await db.execute(
        select(Organization, Membership.role)
        .join(Membership, Membership.organization_id == Organization.id)
        .where(Membership.user_id == user_id)
        .order_by(Organization.created_at, Organization.id)
    )
    return [(org, role) for org, role in result.all()]


async def list_members(
    db: AsyncSession, requester_id: int, organization_id: int
) -> list[tuple[Membership, User]]:
    """Members of an organization. Requester must be a member."""
    await require_membership(db, requester_id, organization_id)
    result = await db.execute(
        select(Membership, User)
        .join(User, User.id == Membership.user_id)
        .where(Membership.organization_id == organization_id)
        .order_by(Membership.created_at, Membership.id)
    )
    return [(m, u) for m, u in result.all()]


async def remove_member(
    db: AsyncSession,
    requester_id: int,
    organization_id: int,
    membership_id: int,
) -> None:
    """Delete a non-owner membership. Owner only. Outlines of the organization are left in place."""
    await require_owner(db, requester_id, organization_id)
    target = await db.get(Membership, membership_id)
    if target is None or target.organization_id != organization_id:
        raise NotFound("Member not found")
    if target.role == MemberRole.OWNER:
        raise Forbidden("Cannot remove organization owners")
    await db.delete(target)
    await db.commit()
    logger.info(
        "User %s removed membership %s (user %s) from organization %s",
        requester_id, membership_id, target.user_id, organization_id,
    )
