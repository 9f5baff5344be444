# Copyright (C) 2024 OutlineHub Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Email sending service. Resend API, then SMTP; logs to console when neither is configured."""

import asyncio
import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr

import httpx

from outlinehub_server.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The message could not be handed to the email provider."""


@dataclass
class EmailResult:
    sent: bool
    error: str | None = None


def _base_url() -> str:
    return (settings.app_base_url or "http://localhost:3000").rstrip("/")


def invitation_link(invitation_id: str) -> str:
    return f"{_base_url()}/invite/{invitation_id}"


def verification_link(token: str) -> str:
    return f"{_base_url()}/verify-email?token={token}"


def _button_html(heading: str, intro: str, label: str, link: str, footer: str = "") -> str:
    link_escaped = html.escape(link, quote=True)
    footer_html = f'<p style="color: #666; font-size: 12px; margin-top: 30px;">{footer}</p>' if footer else ""
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body>
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
<h2>{heading}</h2>
{intro}
<a href="{link_escaped}" style="display: inline-block; padding: 12px 24px; background-color: #0070f3; color: white; text-decoration: none; border-radius: 5px; margin: 20px 0;">{label}</a>
<p>Or copy and paste this link into your browser:</p>
<p style="word-break: break-all; color: #666;">{link_escaped}</p>
{footer_html}
</div>
</body>
</html>"""


async def _send_resend(
    to: str, subject: str, text: str, html_body: str, sender: str, reply_to: str | None
) -> None:
    payload: dict = {
        "from": sender,
        "to": [to],
        "subject": subject,
        "text": text,
        "html": html_body,
    }
    if reply_to:
        payload["reply_to"] = reply_to
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            r = await client.post(
                settings.resend_api_url,
                json=payload,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            )
    except httpx.HTTPError as e:
        raise EmailDeliveryError(f"Email provider unreachable: {e}") from e
    if r.status_code >= 400:
        try:
            body = r.json()
            message = (body.get("message") if isinstance(body, dict) else None) or r.text
        except ValueError:
            message = r.text
        if "not verified" in message or "domain" in message:
            logger.error("Sender domain of %s is not verified with the email provider", sender)
        raise EmailDeliveryError(message or f"Email provider returned {r.status_code}")


def _send_smtp(to: str, subject: str, text: str, html_body: str, sender: str, reply_to: str | None) -> None:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html_body, "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password or "")
            server.sendmail(parseaddr(sender)[1], [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise EmailDeliveryError(str(e)) from e


async def send_email(
    to: str,
    subject: str,
    text: str,
    html_body: str,
    sender: str | None = None,
    reply_to: str | None = None,
) -> None:
    """Deliver one message. Raises EmailDeliveryError when the provider rejects it."""
    sender = sender or settings.email_from
    if settings.resend_api_key:
        await _send_resend(to, subject, text, html_body, sender, reply_to)
    elif settings.smtp_host and settings.smtp_user:
        await asyncio.to_thread(_send_smtp, to, subject, text, html_body, sender, reply_to)
    else:
        logger.info("Email (no provider configured): To=%s Subject=%s Body=%s", to, subject, text[:200])
        return
    logger.info("Email sent: To=%s Subject=%s", to, subject)


async def send_invitation_email(
    to: str,
    invitation_id: str,
    inviter_name: str | None = None,
    inviter_email: str | None = None,
) -> EmailResult:
    """Send the acceptance link for an invitation. Never raises; failures are returned."""
    link = invitation_link(invitation_id)
    if inviter_name:
        subject = f"{inviter_name} invited you to join"
        intro = f"<p><strong>{html.escape(inviter_name)}</strong> has invited you to join an organization.</p>"
        # Display name of the inviter on the configured sending address
        sender = f"{inviter_name} <{parseaddr(settings.email_from)[1]}>"
    else:
        subject = "You've been invited!"
        intro = "<p>You have been invited to join an organization.</p>"
        sender = settings.email_from
    intro += "<p>Click the button below to accept the invitation:</p>"
    text = (
        f"You have been invited to join an organization on OutlineHub.\n\n"
        f"Accept the invitation here:\n\n{link}\n\nThe link expires in {settings.invitation_expire_days} days."
    )
    try:
        await send_email(
            to,
            subject,
            text,
            _button_html("You've been invited!", intro, "Accept Invitation", link),
            sender=sender,
            reply_to=inviter_email,
        )
    except Exception as e:
        logger.exception("Failed to send invitation email to %s", to)
        return EmailResult(sent=False, error=str(e) or type(e).__name__)
    return EmailResult(sent=True)


async def send_verification_email(to: str, token: str, name: str | None = None) -> None:
    """Send the email verification link. Raises EmailDeliveryError on failure."""
    link = verification_link(token)
    greeting = f"<p>Hi {html.escape(name)},</p>" if name else ""
    intro = greeting + (
        "<p>Thank you for signing up! Please verify your email address by clicking the button below:</p>"
    )
    text = (
        f"Thank you for signing up! Verify your email address here:\n\n{link}\n\n"
        f"This link will expire in {settings.verification_expire_hours} hours."
    )
    await send_email(
        to,
        "Verify your email address",
        text,
        _button_html(
            "Verify your email address",
            intro,
            "Verify Email",
            link,
            footer=f"This link will expire in {settings.verification_expire_hours} hours.",
        ),
    )
