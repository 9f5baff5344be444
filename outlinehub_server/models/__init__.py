# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from outlinehub_server.models.base import Base
from outlinehub_server.models.user import User
from outlinehub_server.models.organization import MemberRole, Membership, Organization
from outlinehub_server.models.invitation import Invitation, InvitationStatus
from outlinehub_server.models.verification_token import VerificationToken
from outlinehub_server.models.outline import Outline

__all__ = [
    "Base",
    "User",
    "MemberRole",
    "Membership",
    "Organization",
    "Invitation",
    "InvitationStatus",
    "VerificationToken",
    "Outline",
]
