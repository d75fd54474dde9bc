# src/synapse_ops/email/smtp_sender.py
from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Optional

from synapse_ops.config import SmtpSettings


def send_email(
    smtp: SmtpSettings,
    *,
    to_email: str,
    subject: str,
    body_text: str,
    body_html: Optional[str] = None,
) -> None:
    """
    Minimal SMTP sender (stdlib only).

    Settings come from SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASS / SMTP_FROM.

    Notes:
      - Port 587 uses STARTTLS; port 465 uses implicit TLS.
      - For testing, an ethereal.email account works with port 587.
    """
    if not smtp.host or not smtp.user:
        raise RuntimeError("email not configured: set SMTP_HOST/PORT/USER/PASS")
    if not to_email:
        raise RuntimeError("email recipient missing: set ALERT_EMAIL")

    msg = EmailMessage()
    msg["From"] = smtp.sender or smtp.user
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body_text)
    if body_html:
        msg.add_alternative(body_html, subtype="html")

    if int(smtp.port) == 465:
        with smtplib.SMTP_SSL(smtp.host, int(smtp.port), timeout=20) as s:
            s.login(smtp.user, smtp.password)
            s.send_message(msg)
        return

    with smtplib.SMTP(smtp.host, int(smtp.port), timeout=20) as s:
        s.ehlo()
        s.starttls()
        s.ehlo()
        s.login(smtp.user, smtp.password)
        s.send_message(msg)
