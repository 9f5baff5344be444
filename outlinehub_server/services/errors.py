# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Typed failures of organization, membership and invitation operations.

Each error carries the HTTP status and a stable ``code`` the dashboard uses to
pick the message it shows (sign in again, request a new invite, ...).
"""


class OrganizationError(Exception):
    """Base class. Rendered as ``{"detail": message, "code": code}``."""

    status_code = 400
    code = "organization_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Forbidden(OrganizationError):
    """Authenticated but not allowed (not owner, not member, or target is an owner)."""

    status_code = 403
    code = "forbidden"


class InvalidRequest(OrganizationError):
    status_code = 400
    code = "invalid_request"


class NotFound(OrganizationError):
    status_code = 404
    code = "not_found"


class ExpiredInvitation(OrganizationError):
    status_code = 410
    code = "expired"


class AlreadyProcessed(OrganizationError):
    status_code = 409
    code = "already_processed"


class EmailMismatch(OrganizationError):
    status_code = 403
    code = "email_mismatch"
