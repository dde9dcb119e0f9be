"""Email service using Resend."""

import asyncio
import logging
from html import escape

import resend

from grantcue.config import settings
from grantcue.services.chat import format_date
from grantcue.services.events import MatchSummary

logger = logging.getLogger(__name__)

# Initialize Resend
resend.api_key = settings.resend_api_key


async def send_email(to: str, subject: str, html: str) -> bool:
    """Send an email using Resend."""
    if not settings.resend_api_key:
        logger.info("[Email] Would send to %s: %s", to, subject)
        return True

    try:
        await asyncio.to_thread(resend.Emails.send, {
            "from": settings.from_email,
            "to": to,
            "subject": subject,
            "html": html,
        })
        return True
    except Exception as e:
        logger.error("Email send to %s failed: %s", to, e)
        return False


def render_alert_matches_html(
    user_name: str,
    alert_name: str,
    matches: list[MatchSummary],
    action_url: str,
) -> str:
    rows = []
    for match in matches:
        details = []
        if match.agency:
            details.append(escape(match.agency))
        if match.close_date:
            details.append(f"Closes {format_date(match.close_date)}")
        rows.append(f"""
        <li style="margin-bottom: 12px;">
            <strong>{escape(match.title)}</strong><br>
            <span style="color: #64748b; font-size: 14px;">{" · ".join(details)}</span>
        </li>""")

    return f"""
    <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
        <h1 style="color: #0f172a;">New grants match your alert</h1>
        <p>Hi {escape(user_name)}, we found {len(matches)} new grant{"s" if len(matches) != 1 else ""} matching <strong>{escape(alert_name)}</strong>.</p>
        <ul style="padding-left: 20px;">{"".join(rows)}
        </ul>
        <a href="{action_url}"
           style="display: inline-block; background-color: #6366f1; color: white; padding: 12px 24px; text-decoration: none; border-radius: 8px; margin: 16px 0;">
            View Matches
        </a>
        <p style="color: #64748b; font-size: 14px;">
            You're receiving this because email notifications are turned on for this alert.
        </p>
    </div>
    """


async def send_alert_matches_email(
    email: str,
    user_name: str,
    alert_name: str,
    matches: list[MatchSummary],
    action_url: str,
) -> bool:
    """Send the digest of new matches for one alert."""
    html = render_alert_matches_html(user_name, alert_name, matches, action_url)
    subject = f"{len(matches)} New Grants Match Your Alert: {alert_name}"
    return await send_email(email, subject, html)
