"""Transactional email through the SendGrid v3 REST API.

Subjects never carry patient details; everything identifying lives in the body,
which is addressed only to the named provider.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from html import escape
from typing import Iterable, Optional

import httpx

from .config import CONFIG
from .schemas import CheckIn, User

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"

RED_FLAG_SUBJECT = "The Heart Next Door - Patient Check-In Alert"
PAIN_ALERT_SUBJECT = "The Heart Next Door - Urgent Patient Alert"
WEEKLY_SUMMARY_SUBJECT = "The Heart Next Door - Weekly Patient Summary"

_TAGS = re.compile(r"<[^>]*>")
_BLANK_LINES = re.compile(r"\n\s*\n+")

_FOOTER_HTML = """
  <div style="background: #f3f4f6; padding: 20px; text-align: center;">
    <p style="color: #6b7280; font-size: 12px; margin: 0;">
      This message contains protected health information (PHI) and is intended only for the named recipient.
      If you received this in error, please delete it immediately and notify the sender.
    </p>
    <p style="color: #9ca3af; font-size: 11px; margin: 10px 0 0 0;">The Heart Next Door - Maternal Wellness Support</p>
  </div>
"""
_FOOTER_TEXT = (
    "---\n"
    "This message contains protected health information (PHI) and is intended only for the named recipient.\n"
    "If you received this in error, please delete it immediately and notify the sender.\n\n"
    "The Heart Next Door - Maternal Wellness Support"
)


def html_to_text(html: str) -> str:
    return _BLANK_LINES.sub("\n\n", _TAGS.sub("", html)).strip()


def send_email(to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    """Deliver one message. Returns False on any failure instead of raising."""
    if not CONFIG.sendgrid_api_key:
        logger.warning("SendGrid API key not configured; email not sent", extra={"subject": subject})
        return False
    payload = {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": CONFIG.email_from},
        "subject": subject,
        "content": [
            {"type": "text/plain", "value": text or html_to_text(html)},
            {"type": "text/html", "value": html},
        ],
    }
    try:
        with httpx.Client(timeout=15.0) as client:
            resp = client.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {CONFIG.sendgrid_api_key}"},
            )
    except httpx.HTTPError as exc:
        logger.exception("SendGrid request failed", exc_info=exc)
        return False
    if resp.status_code >= 400:
        logger.error(
            "SendGrid rejected message",
            extra={"status": resp.status_code, "body": resp.text[:500], "subject": subject},
        )
        return False
    logger.info("Email sent", extra={"subject": subject})
    return True


def _patient_name(mother: User) -> str:
    parts = [mother.first_name or mother.name, mother.last_name or ""]
    return " ".join(part for part in parts if part).strip()


def _status_line(mother: User) -> str:
    if mother.is_postpartum:
        return "Postpartum"
    return f"Week {mother.pregnancy_week or 'N/A'}"


def _wrap(banner: str, subtitle: str, body: str) -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: {banner}; padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">The Heart Next Door</h1>
    <p style="color: white; margin: 5px 0 0 0;">{subtitle}</p>
  </div>
  <div style="padding: 30px; background: #fff;">
{body}
  </div>
{_FOOTER_HTML}
</div>
"""


def render_red_flag_alert(
    *, mother: User, provider_name: str, alert: str, details: Iterable[str]
) -> tuple[str, str, str]:
    """Returns (subject, html, text)."""
    detail_items = "".join(f"<li>{escape(item)}</li>" for item in details)
    body = f"""
    <p style="color: #374151; font-size: 16px;">Dear {escape(provider_name)},</p>
    <div style="background: #fef3c7; border-left: 4px solid #f59e0b; padding: 15px; margin: 20px 0;">
      <p style="color: #92400e; margin: 0; font-weight: bold;">A patient check-in requires your attention</p>
    </div>
    <p style="color: #374151; font-size: 14px;">
      <strong>Patient:</strong> {escape(_patient_name(mother))}<br>
      <strong>Status:</strong> {escape(_status_line(mother))}
    </p>
    <div style="background: #fef2f2; border: 1px solid #fecaca; border-radius: 8px; padding: 15px; margin: 20px 0;">
      <p style="color: #991b1b; margin: 0 0 10px 0; font-weight: bold;">Alert: {escape(alert)}</p>
      <ul style="color: #374151; margin: 0; padding-left: 20px;">{detail_items}</ul>
    </div>
    <p style="color: #6b7280; font-size: 13px; margin-top: 20px;">
      This notification was generated because the patient reported concerning symptoms.
      Please follow up at your earliest convenience.
    </p>
"""
    html = _wrap("linear-gradient(135deg, #ec4899 0%, #f472b6 100%)", "Care Team Alert", body)
    text = "\n".join(
        [
            "The Heart Next Door - Care Team Alert",
            "",
            f"Dear {provider_name},",
            "",
            "A patient check-in requires your attention.",
            "",
            f"Patient: {_patient_name(mother)}",
            f"Status: {_status_line(mother)}",
            "",
            f"Alert: {alert}",
            *[f"- {item}" for item in details],
            "",
            "This notification was generated because the patient reported concerning symptoms.",
            "Please follow up at your earliest convenience.",
            "",
            _FOOTER_TEXT,
        ]
    )
    return RED_FLAG_SUBJECT, html, text


def render_pain_alert(
    *, mother: User, provider_name: str, check_in: CheckIn, details: Iterable[str] = ()
) -> tuple[str, str, str]:
    reported_at = check_in.created_at.strftime("%Y-%m-%d %H:%M UTC")
    extra = "".join(f"<li>{escape(item)}</li>" for item in details)
    body = f"""
    <p style="color: #374151; font-size: 16px;">Dear {escape(provider_name)},</p>
    <div style="background: #fef2f2; border-left: 4px solid #dc2626; padding: 15px; margin: 20px 0;">
      <p style="color: #991b1b; margin: 0; font-weight: bold; font-size: 16px;">
        Patient has reported being in pain during check-in
      </p>
    </div>
    <div style="background: #f9fafb; border-radius: 8px; padding: 15px; margin: 20px 0;">
      <p style="color: #374151; margin: 0;">
        <strong>Patient:</strong> {escape(_patient_name(mother))}<br>
        <strong>Date/Time:</strong> {escape(reported_at)}<br>
        <strong>Status:</strong> {escape(_status_line(mother))}
      </p>
    </div>
    <div style="background: #fef2f2; border: 1px solid #fecaca; border-radius: 8px; padding: 15px; margin: 20px 0;">
      <p style="color: #991b1b; margin: 0 0 10px 0; font-weight: bold;">Check-In Details:</p>
      <ul style="color: #374151; margin: 0; padding-left: 20px;">
        <li><strong>Current Feeling:</strong> {escape(check_in.feeling)}</li>
        <li><strong>Body Care Today:</strong> {escape(check_in.body_care or 'not reported')}</li>
        <li><strong>Support Level:</strong> {escape(check_in.feeling_supported or 'not reported')}</li>
        {extra}
      </ul>
    </div>
    <p style="color: #dc2626; font-size: 14px; font-weight: bold; margin-top: 20px;">
      Recommended Action: Please follow up with this patient as soon as possible.
    </p>
"""
    html = _wrap("#dc2626", "URGENT: Patient Alert", body)
    text = "\n".join(
        [
            "URGENT: The Heart Next Door - Patient Alert",
            "",
            f"Dear {provider_name},",
            "",
            "Patient has reported being in pain during check-in.",
            "",
            f"Patient: {_patient_name(mother)}",
            f"Date/Time: {reported_at}",
            f"Status: {_status_line(mother)}",
            "",
            "Check-In Details:",
            f"- Current Feeling: {check_in.feeling}",
            f"- Body Care Today: {check_in.body_care or 'not reported'}",
            f"- Support Level: {check_in.feeling_supported or 'not reported'}",
            *[f"- {item}" for item in details],
            "",
            "Recommended Action: Please follow up with this patient as soon as possible.",
            "",
            _FOOTER_TEXT,
        ]
    )
    return PAIN_ALERT_SUBJECT, html, text


def render_weekly_summary(
    *,
    mother: User,
    provider_name: str,
    check_ins: list[CheckIn],
    concerning: frozenset[str],
) -> tuple[str, str, str]:
    counts: dict[str, int] = {}
    for check_in in check_ins:
        counts[check_in.feeling] = counts.get(check_in.feeling, 0) + 1
    mood_summary = ", ".join(f"{feeling}: {count} day(s)" for feeling, count in counts.items())
    has_concerns = any(check_in.feeling.lower() in concerning for check_in in check_ins)

    def _day(value: datetime) -> str:
        return value.strftime("%Y-%m-%d")

    rows = []
    for check_in in check_ins:
        flagged = check_in.feeling.lower() in concerning
        style = "color: #dc2626; font-weight: bold;" if flagged else ""
        rows.append(
            "<tr>"
            f'<td style="padding: 10px;">{_day(check_in.created_at)}</td>'
            f'<td style="padding: 10px; {style}">{escape(check_in.feeling)}</td>'
            f'<td style="padding: 10px;">{escape(check_in.body_care or "")}</td>'
            f'<td style="padding: 10px;">{escape(check_in.feeling_supported or "")}</td>'
            "</tr>"
        )
    concern_banner = (
        '<div style="background: #fef3c7; border-left: 4px solid #f59e0b; padding: 15px; margin: 20px 0;">'
        '<p style="color: #92400e; margin: 0; font-weight: bold;">'
        "Note: Some concerning feelings were reported this week</p></div>"
        if has_concerns
        else ""
    )
    body = f"""
    <p style="color: #374151; font-size: 16px;">Dear {escape(provider_name)},</p>
    <p style="color: #374151; font-size: 14px;">Here is the weekly wellness summary for your patient:</p>
    <div style="background: #f3f4f6; border-radius: 8px; padding: 15px; margin: 20px 0;">
      <p style="color: #374151; margin: 0;">
        <strong>Patient:</strong> {escape(_patient_name(mother))}<br>
        <strong>Status:</strong> {escape(_status_line(mother))}<br>
        <strong>Check-ins this week:</strong> {len(check_ins)}
      </p>
    </div>
    {concern_banner}
    <div style="background: #fdf2f8; border-radius: 8px; padding: 15px; margin: 20px 0;">
      <h3 style="color: #be185d; margin: 0 0 15px 0;">Weekly Mood Summary</h3>
      <p style="color: #374151; margin: 0;">{escape(mood_summary)}</p>
    </div>
    <h3 style="color: #374151; margin: 20px 0 15px 0;">Daily Check-In Details</h3>
    <table style="width: 100%; border-collapse: collapse; font-size: 13px;">
      <thead>
        <tr><th>Date</th><th>Feeling</th><th>Body Care</th><th>Support</th></tr>
      </thead>
      <tbody>{''.join(rows)}</tbody>
    </table>
"""
    html = _wrap("linear-gradient(135deg, #ec4899 0%, #f472b6 100%)", "Weekly Wellness Summary", body)
    lines = [
        "The Heart Next Door - Weekly Wellness Summary",
        "",
        f"Dear {provider_name},",
        "",
        "Here is the weekly wellness summary for your patient:",
        "",
        f"Patient: {_patient_name(mother)}",
        f"Status: {_status_line(mother)}",
        f"Check-ins this week: {len(check_ins)}",
        "",
        "Weekly Mood Summary:",
        mood_summary,
        "",
    ]
    if has_concerns:
        lines.extend(["Note: Some concerning feelings were reported this week.", ""])
    lines.append("Daily Check-In Details:")
    for check_in in check_ins:
        marker = " (!)" if check_in.feeling.lower() in concerning else ""
        lines.append(
            f"- {_day(check_in.created_at)}: {check_in.feeling}{marker}, "
            f"Body Care: {check_in.body_care or ''}, Support: {check_in.feeling_supported or ''}"
        )
    lines.extend(["", _FOOTER_TEXT])
    return WEEKLY_SUMMARY_SUBJECT, html, "\n".join(lines)
