"""SMTP delivery and email bodies for account notifications."""

import asyncio
import html as html_lib
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from cvpro.core.config import get_settings
from cvpro.core.logging import get_logger

log = get_logger(__name__)


def _send_sync(to_email: str, subject: str, html: str, text: str) -> None:
    s = get_settings()
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = s.mail_from
    msg["To"] = to_email
    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30) as server:
        server.starttls()
        if s.smtp_username:
            server.login(s.smtp_username, s.smtp_password)
        server.sendmail(s.mail_from, [to_email], msg.as_string())


async def send_email(to_email: str, subject: str, html: str, text: str) -> None:
    """Send via SMTP off the event loop. Raises on delivery failure (the job layer records it)."""
    if not get_settings().smtp_username:
        log.warning("email_not_configured", to=to_email, subject=subject)
        return
    await asyncio.to_thread(_send_sync, to_email, subject, html, text)
    log.info("email_sent", to=to_email, subject=subject)


def payment_confirmation(name: str, credit_amount: int, balance: int) -> tuple[str, str, str]:
    name = html_lib.escape(name or "there")
    subject = f"Payment Confirmed - {credit_amount} Credits Added to Your Account"
    text = (
        f"Hi {name},\n\n"
        f"Your payment has been processed. Credits added: {credit_amount}. Total credits: {balance}.\n\n"
        "Use them to generate AI-tailored resumes and download print-ready copies.\n"
    )
    html = f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Payment Successful!</h2>
        <p>Hi <strong>{name}</strong>,</p>
        <p><strong>Credits Added:</strong> {credit_amount}</p>
        <p><strong>Total Credits:</strong> {balance}</p>
        <p>You can now use these credits to generate AI-tailored resumes and download print-ready copies.</p>
      </div>
    """
    return subject, html, text


def verification(verify_url: str) -> tuple[str, str, str]:
    subject = "Verify your OneClickCV Pro account"
    text = f"Open this link to activate your account: {verify_url}\n"
    html = f"""
      <h2>Verify your account</h2>
      <p>Click the link below to activate your account:</p>
      <a href="{verify_url}" target="_blank">Verify Account</a>
    """
    return subject, html, text
