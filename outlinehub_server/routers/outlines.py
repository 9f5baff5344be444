# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Outline API routes. Every route requires membership of the outline's organization."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outlinehub_server.api.schemas import OutlineCreate, OutlineResponse, OutlineUpdate, SuccessResponse
from outlinehub_server.auth import get_current_user
from outlinehub_server.database import get_db
from outlinehub_server.models import Outline, User
from outlinehub_server.services.organizations import require_membership

router = APIRouter(prefix="/outlines", tags=["outlines"])

# Only these may be cleared with an explicit null
_NULLABLE_FIELDS = {"target", "limit"}


async def _get_outline_for_member(db: AsyncSession, outline_id: int, user_id: int) -> Outline:
    outline = await db.get(Outline, outline_id)
    if not outline:
        raise HTTPException(status_code=404, detail="Outline not found")
    await require_membership(db, user_id, outline.organization_id)
    return outline


@router.get("", response_model=list[OutlineResponse])
async def list_outlines(
    org_id: int = Query(..., description="Organization id"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[OutlineResponse]:
    """Outlines of an organization, newest first."""
    await require_membership(db, user.id, org_id)
    result = await db.execute(
        select(Outline)
        .where(Outline.organization_id == org_id)
        .order_by(Outline.created_at.desc(), Outline.id.desc())
    )
    return [OutlineResponse.model_validate(o) for o in result.scalars().all()]


@router.post("", response_model=OutlineResponse)
async def create_outline(
    data: OutlineCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OutlineResponse:
    await require_membership(db, user.id, data.organization_id)
    outline = Outline(**data.model_dump())
    db.add(outline)
    await db.commit()
    await db.refresh(outline)
    return OutlineResponse.model_validate(outline)


@router.get("/{outline_id}", response_model=OutlineResponse)
async def get_outline(
    outline_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OutlineResponse:
    outline = await _get_outline_for_member(db, outline_id, user.id)
    return OutlineResponse.model_validate(outline)


@router.put("/{outline_id}", response_model=OutlineResponse)
async def update_outline(
    outline_id: int,
    data: OutlineUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OutlineResponse:
    """Update only the fields present in the request body."""
    outline = await _get_outline_for_member(db, outline_id, user.id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field not in _NULLABLE_FIELDS:
            continue
        setattr(outline, field, value)
    await db.commit()
    await db.refresh(outline)
    return OutlineResponse.model_validate(outline)


@router.delete("/{outline_id}", response_model=SuccessResponse)
async def delete_outline(
    outline_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    outline = await _get_outline_for_member(db, outline_id, user.id)
    await db.delete(outline)
    await db.commit()
    return SuccessResponse()
