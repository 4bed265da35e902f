"""
Email templates for the PD Portal.

All templates use inline CSS for email client compatibility.
Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

APP_NAME = "PD Portal"

# Color constants
BG_PAGE = "#F3F4F6"
BG_CARD = "#FFFFFF"
BG_SURFACE = "#F9FAFB"
ACCENT = "#3B82F6"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#4B5563"
BORDER = "#E5E7EB"


def _base_layout(content: str, app_name: str = APP_NAME) -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 22px; font-weight: 700; color: {TEXT_PRIMARY};">{app_name}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 36px 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                You are receiving this email because you have an account on {app_name}.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    """Render a CTA button."""
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 28px auto;">
    <tr>
        <td align="center" style="background-color: {ACCENT}; border-radius: 8px;">
            <a href="{url}" target="_blank" style="display: inline-block; padding: 12px 28px; color: #FFFFFF; font-size: 15px; font-weight: 600; text-decoration: none; border-radius: 8px;">
                {label}
            </a>
        </td>
    </tr>
</table>"""


def _details_box(rows: list[tuple[str, str]]) -> str:
    cells = "".join(
        f'<tr><td style="color: {TEXT_SECONDARY}; font-size: 14px; padding: 4px 16px 4px 0;">{label}</td>'
        f'<td style="color: {TEXT_PRIMARY}; font-size: 14px; font-weight: 600; padding: 4px 0;">{escape(value)}</td></tr>'
        for label, value in rows
        if value
    )
    return f"""\
<div style="background-color: {BG_SURFACE}; border: 1px solid {BORDER}; border-radius: 8px; padding: 16px; margin: 20px 0;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0">{cells}</table>
</div>"""


def registration_confirmation(
    first_name: str | None,
    session_title: str,
    session_date: str,
    start_time: str,
    location: str | None,
    sessions_url: str,
) -> tuple[str, str, str]:
    """
    Sent after a staff member registers for a session.

    Returns:
        (subject, html_body, text_body)
    """
    name = escape(first_name or "there")
    title = escape(session_title)
    subject = f"You're registered: {session_title}"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">Registration confirmed</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {name},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0;">
    You are registered for <strong style="color: {TEXT_PRIMARY};">{title}</strong>.
</p>
{_details_box([("Date", session_date), ("Time", start_time), ("Location", location or "")])}
{_button(sessions_url, "View My Registrations")}
<p style="color: {TEXT_SECONDARY}; font-size: 13px; line-height: 1.5; margin: 0;">
    Can't make it? Cancel from your registrations page so someone else can take the seat.
</p>"""
    html_body = _base_layout(content)
    location_line = f"Location: {location}\n" if location else ""
    text_body = (
        f"Hi {first_name or 'there'},\n\n"
        f"You are registered for {session_title}.\n\n"
        f"Date: {session_date}\n"
        f"Time: {start_time}\n"
        f"{location_line}\n"
        f"View your registrations: {sessions_url}\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, html_body, text_body


def registration_cancelled(
    first_name: str | None,
    session_title: str,
    session_date: str,
    browse_url: str,
) -> tuple[str, str, str]:
    """
    Sent after a staff member cancels a registration.

    Returns:
        (subject, html_body, text_body)
    """
    name = escape(first_name or "there")
    title = escape(session_title)
    subject = f"Registration cancelled: {session_title}"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">Registration cancelled</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {name},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0;">
    Your registration for <strong style="color: {TEXT_PRIMARY};">{title}</strong> on {escape(session_date)} has been cancelled.
</p>
{_button(browse_url, "Browse Sessions")}"""
    html_body = _base_layout(content)
    text_body = (
        f"Hi {first_name or 'there'},\n\n"
        f"Your registration for {session_title} on {session_date} has been cancelled.\n\n"
        f"Browse other sessions: {browse_url}\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, html_body, text_body
