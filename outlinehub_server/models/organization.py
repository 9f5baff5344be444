# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Organization and membership models."""

import enum

from sqlalchemy import Enum, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from outlinehub_server.models.base import Base
from outlinehub_server.models.timestamp import TimestampMixin


class MemberRole(str, enum.Enum):
    OWNER = "owner"
    MEMBER = "member"


def role_column_type() -> Enum:
    """VARCHAR-backed role column holding the enum values ("owner", "member")."""
    return Enum(
        MemberRole,
        native_enum=False,
        length=16,
        values_callable=lambda roles: [r.value for r in roles],
    )


class Organization(Base, TimestampMixin):
    """Tenant grouping users and outlines."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Not unique: identical names produce identical slugs
    slug: Mapped[str] = mapped_column(String(50), nullable=False, index=True)


class Membership(Base, TimestampMixin):
    """A user's role in one organization."""

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_memberships_user_org"),
        # At most one owner per organization
        Index(
            "uq_memberships_single_owner",
            "organization_id",
            unique=True,
            postgresql_where=text("role = 'owner'"),
            sqlite_where=text("role = 'owner'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[MemberRole] = mapped_column(role_column_type(), nullable=False)
