"""
Email Delivery for cutover alerts via SendGrid.
"""

import asyncio
from typing import Any

import sendgrid
from sendgrid.helpers.mail import Mail

from integrations.base import Notifier, register_notifier


def render_alert_html(message: str) -> str:
    """Wrap plain alert text in a minimal HTML body. Line breaks are preserved."""
    body = "<br>".join(line for line in message.splitlines())
    return f"""
    <div style="font-family: Inter, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background: #1e1b4b; color: white; padding: 24px; border-radius: 12px 12px 0 0;">
        <h1 style="margin: 0; font-size: 20px;">Cutover Monitor</h1>
      </div>
      <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0;">
        <p style="color: #334155; line-height: 1.6; font-family: monospace;">{body}</p>
      </div>
    </div>
    """


@register_notifier
class SendGridEmailNotifier(Notifier):
    """Send alert emails to a single distribution address."""

    channel = "email"

    async def send(self, message: str) -> str | None:
        subject = f"Cutover Monitor: {message.splitlines()[0] if message else 'alert'}"
        email = Mail(
            from_email=self.config.get("from_email", ""),
            to_emails=self.config.get("to_email", ""),
            subject=subject,
            html_content=render_alert_html(message),
        )
        try:
            sg = sendgrid.SendGridAPIClient(api_key=self.config.get("api_key", ""))
            # The SendGrid client is synchronous.
            response = await asyncio.to_thread(sg.send, email)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("email.failed", error=str(exc))
            return None

        if response.status_code not in (200, 201, 202):
            self.logger.error("email.rejected", status_code=response.status_code)
            return None
        message_id = response.headers.get("X-Message-Id") or f"sendgrid-{response.status_code}"
        self.logger.info("email.sent", message_id=message_id)
        return message_id
