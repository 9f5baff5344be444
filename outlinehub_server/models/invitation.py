# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Invitation model - pending offer of organization membership to an email address."""

import enum
import secrets
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from outlinehub_server.models.base import Base
from outlinehub_server.models.organization import MemberRole, role_column_type


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"


def new_invitation_id() -> str:
    """Unguessable id; it is also the bearer token in the acceptance link."""
    return secrets.token_urlsafe(24)


class Invitation(Base):
    """Invitation to join an organization. One row per (email, organization); re-invites update it."""

    __tablename__ = "invitations"
    __table_args__ = (
        UniqueConstraint("email", "organization_id", name="uq_invitations_email_org"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_invitation_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[MemberRole] = mapped_column(role_column_type(), nullable=False)
    status: Mapped[InvitationStatus] = mapped_column(
        Enum(
            InvitationStatus,
            native_enum=False,
            length=16,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=InvitationStatus.PENDING,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    invited_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
