"""
Reminder message templates.

All HTML uses inline CSS for email client compatibility, with an accent
colour per platform. Email templates return (subject, html_body, text_body).
"""

from __future__ import annotations

from datetime import datetime
from html import escape

from codenotify.notifications.schemas import NotificationPayload

# Color constants
BG_PAGE = "#F8FAFC"
BG_CARD = "#FFFFFF"
BORDER = "#E5E7EB"
TEXT_PRIMARY = "#0F172A"
TEXT_SECONDARY = "#64748B"
URGENT = "#B91C1C"
DEFAULT_ACCENT = "#6366F1"

PLATFORM_COLORS = {
    "codeforces": "#1F8ACB",
    "leetcode": "#FFA116",
    "codechef": "#5B4638",
    "atcoder": "#000000",
}


def platform_color(platform: str) -> str:
    return PLATFORM_COLORS.get(platform.lower(), DEFAULT_ACCENT)


def format_start_time(start_time: datetime) -> str:
    """Human-readable UTC start time, e.g. 'Saturday, March 2, 2024 at 14:35 UTC'."""
    return f"{start_time:%A, %B} {start_time.day}, {start_time:%Y at %H:%M} UTC"


def _hours_label(hours: int) -> str:
    return "1 hour" if hours == 1 else f"{hours} hours"


def _base_layout(content: str, app_name: str = "CodeNotify") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%; background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 10px;">
                    <tr>
                        <td style="padding: 24px; border-bottom: 1px solid {BORDER};">
                            <span style="font-size: 22px; font-weight: 600; color: {TEXT_PRIMARY};">Contest Alert</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding: 16px 24px; border-top: 1px solid {BORDER};">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                You are receiving this because you subscribed to contest reminders on {app_name}.<br>
                                Update your notification preferences in your account settings.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str, color: str) -> str:
    """Render a CTA button in the platform colour."""
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 28px auto 0 auto;">
    <tr>
        <td align="center" style="background-color: {color}; border-radius: 6px;">
            <a href="{url}" target="_blank" style="display: inline-block; padding: 12px 28px; color: #FFFFFF; font-size: 15px; font-weight: 600; text-decoration: none; border-radius: 6px;">
                {label}
            </a>
        </td>
    </tr>
</table>"""


def contest_url(payload: NotificationPayload, frontend_base_url: str) -> str:
    return f"{frontend_base_url.rstrip('/')}/contests/{payload.contest_id}"


def contest_reminder(payload: NotificationPayload, frontend_base_url: str) -> tuple[str, str, str]:
    """
    Reminder sent ahead of a contest the user subscribed to.

    Returns:
        (subject, html_body, text_body)
    """
    name = escape(payload.contest_name)
    platform = escape(payload.platform)
    color = platform_color(payload.platform)
    starts_in = _hours_label(payload.hours_until_start)
    start = format_start_time(payload.start_time)
    url = contest_url(payload, frontend_base_url)

    subject = f"Contest Alert: {payload.contest_name}"
    content = f"""\
<h2 style="color: {TEXT_PRIMARY}; font-size: 20px; font-weight: 600; margin: 0 0 8px 0;">{name}</h2>
<p style="color: {TEXT_SECONDARY}; font-size: 15px; margin: 0 0 24px 0;">Stay prepared. Here are the contest details:</p>
<div style="padding: 20px; border: 1px solid {BORDER}; border-radius: 8px;">
    <p style="margin: 0 0 12px 0; font-size: 15px; color: #334155;">
        <strong>Platform:</strong>
        <span style="color: {color}; font-weight: 600; text-transform: uppercase;">{platform}</span>
    </p>
    <p style="margin: 0 0 12px 0; font-size: 15px; color: #334155;">
        <strong>Starts In:</strong>
        <span style="color: {URGENT}; font-weight: 600;">{starts_in}</span>
    </p>
    <p style="margin: 0; font-size: 15px; color: #334155;">
        <strong>Start Time:</strong> {start}
    </p>
</div>
{_button(url, "View Contest Details", color)}
<p style="margin: 28px 0 0 0; font-size: 13px; color: {TEXT_SECONDARY}; line-height: 1.6;">Good luck, go get that rating boost!</p>"""
    html_body = _base_layout(content)
    text_body = (
        f"Contest Alert: {payload.contest_name}\n\n"
        f"Platform: {payload.platform.upper()}\n"
        f"Starts in: {starts_in}\n"
        f"Start time: {start}\n\n"
        f"Details: {url}\n\n"
        f"Good luck!\n\n"
        f"-- CodeNotify"
    )
    return subject, html_body, text_body


def contest_reminder_short(payload: NotificationPayload, frontend_base_url: str) -> str:
    """Plain-text reminder for chat channels."""
    return (
        f"*Contest Alert*\n\n"
        f"{payload.contest_name}\n"
        f"Platform: {payload.platform.upper()}\n"
        f"Starts in: {_hours_label(payload.hours_until_start)}\n"
        f"Start time: {format_start_time(payload.start_time)}\n\n"
        f"{contest_url(payload, frontend_base_url)}"
    )
