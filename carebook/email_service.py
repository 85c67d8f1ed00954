"""
Email Service using Resend
Booking notification and reminder emails rendered as inline-styled HTML
"""

import asyncio
import html
import logging
from datetime import datetime
from typing import Optional, Union

import resend

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .domain.bookings.rules import recurrence_label
from .models import Recurrence

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY

THEME = {
    "primary": "#2563eb",
    "text": "#1f2937",
    "muted": "#6b7280",
    "background": "#f9fafb",
}

# subject, headline, body for each booking event
EVENT_COPY = {
    "booking_created": (
        "New booking request",
        "You have a new booking request",
        "{requester} requested {when}. Review it in your dashboard to confirm or decline.",
    ),
    "booking_rescheduled": (
        "Booking rescheduled",
        "A booking was rescheduled",
        "{requester} moved their booking to {when}. It needs to be confirmed again.",
    ),
    "booking_cancelled": (
        "Booking cancelled",
        "A booking was cancelled",
        "{requester} cancelled the booking for {when}.",
    ),
    "series_cancelled": (
        "Recurring booking cancelled",
        "A recurring booking was cancelled",
        "{requester} cancelled the remaining bookings of their series starting {when}.",
    ),
    "booking_confirmed": (
        "Your booking is confirmed",
        "Your booking is confirmed",
        "{provider} confirmed your booking for {when}.",
    ),
    "booking_declined": (
        "Your booking was declined",
        "Your booking was declined",
        "{provider} could not accept your booking for {when}.",
    ),
    "booking_completed": (
        "Thanks for your visit",
        "Your booking is complete",
        "Your booking with {provider} on {when} has been marked as completed.",
    ),
    "booking_no_show": (
        "Missed booking",
        "We missed you",
        "{provider} marked your booking for {when} as missed.",
    ),
    "meeting_link_added": (
        "Your telehealth link is ready",
        "Your telehealth link is ready",
        "{provider} added a meeting link for your booking on {when}.",
    ),
}


def format_when(scheduled_at: Optional[datetime]) -> str:
    if scheduled_at is None:
        return "a time to be arranged"
    return scheduled_at.strftime("%A, %B %d at %I:%M %p")


def render_email(headline: str, body: str, cta_url: Optional[str] = None, cta_label: str = "View booking") -> str:
    """Wrap copy in the shared email layout"""
    button = ""
    if cta_url:
        button = (
            f'<p style="margin:24px 0;"><a href="{html.escape(cta_url)}" '
            f'style="background:{THEME["primary"]};color:#ffffff;padding:12px 20px;'
            f'border-radius:6px;text-decoration:none;">{html.escape(cta_label)}</a></p>'
        )
    return (
        f'<div style="background:{THEME["background"]};padding:32px;font-family:Arial,sans-serif;">'
        f'<div style="max-width:560px;margin:0 auto;background:#ffffff;padding:32px;border-radius:8px;">'
        f'<h1 style="color:{THEME["text"]};font-size:20px;">{html.escape(headline)}</h1>'
        f'<p style="color:{THEME["text"]};font-size:15px;line-height:1.5;">{html.escape(body)}</p>'
        f"{button}"
        f'<p style="color:{THEME["muted"]};font-size:12px;">Carebook</p>'
        f"</div></div>"
    )


async def send_email(to: Union[str, list[str]], subject: str, html_content: str) -> dict:
    """
    Send an email through Resend

    Raises:
        Exception: when Resend rejects the message
    """
    recipients = [to] if isinstance(to, str) else to

    if not RESEND_API_KEY:
        logger.warning(f"⚠️ RESEND_API_KEY not configured, skipping email to {recipients}")
        return {"skipped": True}

    email_data = {
        "from": EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }

    try:
        # The Resend SDK is synchronous
        response = await asyncio.to_thread(resend.Emails.send, email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


async def send_booking_event_email(
    to: str,
    event: str,
    provider_name: str,
    requester_name: str,
    scheduled_at: Optional[datetime],
    meeting_url: Optional[str] = None,
    recurrence: Optional[str] = None,
) -> dict:
    """Send the email for a booking event to the other party"""
    if event not in EVENT_COPY:
        raise ValueError(f"Unknown booking event: {event}")

    subject, headline, body = EVENT_COPY[event]
    body = body.format(
        provider=provider_name, requester=requester_name, when=format_when(scheduled_at)
    )
    if recurrence and recurrence != Recurrence.NONE:
        body += f" Repeats: {recurrence_label(recurrence).lower()}."

    if event == "meeting_link_added" and meeting_url:
        content = render_email(headline, body, meeting_url, "Join meeting")
    else:
        content = render_email(headline, body, f"{FRONTEND_URL}/bookings")

    return await send_email(to=to, subject=f"{subject} - Carebook", html_content=content)


async def send_booking_reminder_email(
    to: str, provider_name: str, scheduled_at: datetime, meeting_url: Optional[str] = None
) -> dict:
    """Day-before reminder for a confirmed booking"""
    body = f"This is a reminder of your booking with {provider_name} on {format_when(scheduled_at)}."
    if meeting_url:
        content = render_email("Upcoming booking", body, meeting_url, "Join meeting")
    else:
        content = render_email("Upcoming booking", body, f"{FRONTEND_URL}/bookings")

    return await send_email(to=to, subject="Booking reminder - Carebook", html_content=content)
