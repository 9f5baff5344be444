# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from outlinehub_server.models import InvitationStatus, MemberRole


# Auth
class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str | None = None


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    email_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SignUpResponse(BaseModel):
    success: bool = True
    message: str
    user: UserResponse
    requires_verification: bool


class SignInResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class SessionResponse(BaseModel):
    user: UserResponse | None = None


class VerifyEmailResponse(BaseModel):
    success: bool = True
    message: str
    already_verified: bool = False


# Organizations
class OrganizationCreate(BaseModel):
    name: str


class OrganizationResponse(BaseModel):
    id: int
    name: str
    slug: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserOrganizationResponse(OrganizationResponse):
    role: MemberRole


class MembershipResponse(BaseModel):
    id: int
    user_id: int
    organization_id: int
    role: MemberRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberResponse(BaseModel):
    id: int
    user_id: int
    email: str
    name: str
    role: MemberRole
    joined_at: datetime


class InviteRequest(BaseModel):
    organization_id: int
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER


class InviteResponse(BaseModel):
    success: bool = True
    message: str
    outcome: str
    invitation_id: str | None = None
    expires_at: datetime | None = None
    email_sent: bool | None = None
    email_error: str | None = None


class InvitationResponse(BaseModel):
    id: str
    email: str
    organization_id: int
    role: MemberRole
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationDetailsResponse(BaseModel):
    invitation: InvitationResponse
    organization: OrganizationResponse


class AcceptInvitationResponse(BaseModel):
    success: bool = True
    message: str
    outcome: str
    organization_id: int
    role: MemberRole


class JoinRequest(BaseModel):
    token: str


class SuccessResponse(BaseModel):
    success: bool = True


# Outlines
class OutlineCreate(BaseModel):
    organization_id: int
    header: str = Field(min_length=1)
    section_type: str = Field(min_length=1)
    status: str = Field(min_length=1)
    reviewer: str = Field(min_length=1)
    target: int | None = None
    limit: int | None = None


class OutlineUpdate(BaseModel):
    header: str | None = Field(default=None, min_length=1)
    section_type: str | None = Field(default=None, min_length=1)
    status: str | None = Field(default=None, min_length=1)
    reviewer: str | None = Field(default=None, min_length=1)
    target: int | None = None
    limit: int | None = None


class OutlineResponse(BaseModel):
    id: int
    organization_id: int
    header: str
    section_type: str
    status: str
    reviewer: str
    target: int | None = None
    limit: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
