"""Email notifications for approval events.

Messages are built inside the request (while the session is open) from plain
values and delivered afterwards from FastAPI BackgroundTasks. Delivery is
best-effort: a failed email never affects the approval that triggered it.
"""

import logging
from dataclasses import dataclass, field
from html import escape

import httpx

from ..core.config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# MESSAGE
# =============================================================================


@dataclass
class EmailMessage:
    """A rendered email ready for delivery."""
    to: list[str]
    subject: str
    html: str
    tags: list[str] = field(default_factory=list)


def _mockup_link(settings: Settings, asset_id) -> str:
    return f"{settings.frontend_url.rstrip('/')}/mockups/{asset_id}"


def _wrap(title: str, body: str, link: str, cta: str) -> str:
    return f"""
<div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; max-width: 560px;">
    <h2 style="color: #111827;">{escape(title)}</h2>
    <div style="color: #374151; line-height: 1.5;">{body}</div>
    <p style="margin-top: 24px;">
        <a href="{link}" style="background-color: #3B82F6; color: white; padding: 10px 18px;
           border-radius: 6px; text-decoration: none;">{escape(cta)}</a>
    </p>
</div>
"""


# =============================================================================
# MESSAGE BUILDERS
# =============================================================================


def build_stage_review_requested(
    recipients: list[str],
    asset_id,
    asset_name: str,
    project_name: str,
    stage_name: str,
) -> EmailMessage:
    """Reviewers of a stage that just entered review."""
    settings = get_settings()
    body = (
        f"<p><strong>{escape(asset_name)}</strong> in <strong>{escape(project_name)}</strong> "
        f"is ready for your review at the <strong>{escape(stage_name)}</strong> stage.</p>"
    )
    return EmailMessage(
        to=recipients,
        subject=f"Review needed: {asset_name} ({stage_name})",
        html=_wrap("Your review is needed", body, _mockup_link(settings, asset_id), "Review mockup"),
        tags=["stage_review_requested"],
    )


def build_final_approval_pending(
    recipients: list[str],
    asset_id,
    asset_name: str,
    project_name: str,
) -> EmailMessage:
    """Project owner, once every stage has been signed off."""
    settings = get_settings()
    body = (
        f"<p>All review stages for <strong>{escape(asset_name)}</strong> in "
        f"<strong>{escape(project_name)}</strong> are complete.</p>"
        "<p>It is waiting for your final approval.</p>"
    )
    return EmailMessage(
        to=recipients,
        subject=f"Final approval needed: {asset_name}",
        html=_wrap("Ready for final approval", body, _mockup_link(settings, asset_id), "Give final approval"),
        tags=["final_approval_pending"],
    )


def build_final_approved(
    recipients: list[str],
    asset_id,
    asset_name: str,
    project_name: str,
    approver_name: str,
    notes: str | None = None,
) -> EmailMessage:
    """Stakeholders, after the final approval was granted."""
    settings = get_settings()
    body = (
        f"<p><strong>{escape(asset_name)}</strong> in <strong>{escape(project_name)}</strong> "
        f"received final approval from {escape(approver_name)}.</p>"
    )
    if notes:
        body += f'<blockquote style="color: #6B7280;">{escape(notes)}</blockquote>'
    return EmailMessage(
        to=recipients,
        subject=f"Approved: {asset_name}",
        html=_wrap("Mockup approved", body, _mockup_link(settings, asset_id), "View mockup"),
        tags=["final_approved"],
    )


def build_changes_requested(
    recipients: list[str],
    asset_id,
    asset_name: str,
    stage_name: str,
    reviewer_name: str,
    notes: str,
) -> EmailMessage:
    """Asset creator, when a stage reviewer asks for changes."""
    settings = get_settings()
    body = (
        f"<p>{escape(reviewer_name)} requested changes to <strong>{escape(asset_name)}</strong> "
        f"at the <strong>{escape(stage_name)}</strong> stage.</p>"
        f'<blockquote style="color: #6B7280;">{escape(notes)}</blockquote>'
    )
    return EmailMessage(
        to=recipients,
        subject=f"Changes requested: {asset_name}",
        html=_wrap("Changes requested", body, _mockup_link(settings, asset_id), "View feedback"),
        tags=["changes_requested"],
    )


def build_reviewer_invited(
    recipients: list[str],
    asset_id,
    asset_name: str,
    inviter_name: str,
    message: str | None = None,
) -> EmailMessage:
    """Users invited to review a mockup."""
    settings = get_settings()
    body = f"<p>{escape(inviter_name)} invited you to review <strong>{escape(asset_name)}</strong>.</p>"
    if message:
        body += f'<blockquote style="color: #6B7280;">{escape(message)}</blockquote>'
    return EmailMessage(
        to=recipients,
        subject=f"{inviter_name} invited you to review {asset_name}",
        html=_wrap("Review invitation", body, _mockup_link(settings, asset_id), "Open mockup"),
        tags=["reviewer_invited"],
    )


def build_reviewer_responded(
    recipients: list[str],
    asset_id,
    asset_name: str,
    reviewer_name: str,
    status: str,
    note: str | None = None,
) -> EmailMessage:
    """Asset creator, when an invited reviewer records a verdict."""
    settings = get_settings()
    verdict = "approved" if status == "approved" else "requested changes to"
    body = f"<p>{escape(reviewer_name)} {verdict} <strong>{escape(asset_name)}</strong>.</p>"
    if note:
        body += f'<blockquote style="color: #6B7280;">{escape(note)}</blockquote>'
    return EmailMessage(
        to=recipients,
        subject=f"{reviewer_name} reviewed {asset_name}",
        html=_wrap("Review received", body, _mockup_link(settings, asset_id), "View mockup"),
        tags=["reviewer_responded"],
    )


# =============================================================================
# DELIVERY
# =============================================================================


class ApprovalNotifier:
    """
    Sends EmailMessages through a SendGrid-compatible HTTP API.

    Designed to be called from FastAPI BackgroundTasks. Without an API key
    configured, messages are only logged.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _payload(self, message: EmailMessage) -> dict:
        return {
            "personalizations": [{"to": [{"email": email} for email in message.to]}],
            "from": {
                "email": self.settings.email_from,
                "name": self.settings.email_from_name,
            },
            "subject": message.subject,
            "content": [{"type": "text/html", "value": message.html}],
            "categories": message.tags,
        }

    async def send(self, message: EmailMessage) -> bool:
        """Deliver one message. Returns True on success."""
        if not message.to:
            return False

        if not self.settings.email_enabled:
            logger.info(
                f"Email disabled, skipping '{message.subject}' to {len(message.to)} recipient(s)"
            )
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.notification_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.settings.sendgrid_api_url,
                    headers={"Authorization": f"Bearer {self.settings.sendgrid_api_key}"},
                    json=self._payload(message),
                )
            if response.status_code >= 400:
                logger.error(
                    f"Email API error {response.status_code} for '{message.subject}': {response.text[:200]}"
                )
                return False
            logger.info(f"Email '{message.subject}' sent to {len(message.to)} recipient(s)")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email '{message.subject}': {e}")
            return False

    async def send_all(self, messages: list[EmailMessage]) -> None:
        for message in messages:
            await self.send(message)
