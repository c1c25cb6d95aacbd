import logging

import httpx
from pydantic import BaseModel

from ..config import settings

log = logging.getLogger(__name__)


class InvitationMail(BaseModel):
    email: str
    trip_name: str
    inviter_name: str
    join_link: str
    unsubscribe_link: str


def _render(invitation: InvitationMail) -> dict[str, str]:
    subject = f"{invitation.inviter_name} invited you to {invitation.trip_name}"
    text = (
        f"{invitation.inviter_name} added you to the trip '{invitation.trip_name}' on Splitlog.\n"
        f"Join the trip: {invitation.join_link}\n\n"
        f"Don't want these emails? {invitation.unsubscribe_link}"
    )
    html = (
        f"<p><strong>{invitation.inviter_name}</strong> added you to the trip "
        f"<strong>{invitation.trip_name}</strong> on Splitlog.</p>"
        f'<p><a href="{invitation.join_link}">Join the trip</a></p>'
        f'<p style="font-size:12px;color:#9ca3af"><a href="{invitation.unsubscribe_link}">Unsubscribe</a></p>'
    )
    return {"subject": subject, "text": text, "html": html}


def send_trip_invitation(invitation: InvitationMail) -> bool:
    """Fire-and-forget delivery: every failure is logged and swallowed."""
    if not settings.MAIL_API_URL:
        log.info("Mail relay not configured, skipping invitation to %s", invitation.email)
        return False

    payload = {
        "from": settings.MAIL_FROM,
        "to": invitation.email,
        "headers": {"List-Unsubscribe": f"<{invitation.unsubscribe_link}>"},
        **_render(invitation),
    }
    headers = {"Authorization": f"Bearer {settings.MAIL_API_KEY}"} if settings.MAIL_API_KEY else None

    try:
        with httpx.Client(timeout=settings.MAIL_TIMEOUT) as client:
            response = client.post(settings.MAIL_API_URL, json=payload, headers=headers)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        log.warning(
            "Invitation to %s rejected by mail relay (%s)", invitation.email, exc.response.status_code
        )
        return False
    except httpx.HTTPError as exc:
        log.warning("Invitation to %s failed: %s", invitation.email, exc)
        return False

    log.info("Invitation sent to %s for trip '%s'", invitation.email, invitation.trip_name)
    return True
