"""
Twilio SMS Notifier

Posts alert text to the Twilio Messages API through a messaging service.
Delivery failures are logged and reported as a missing message SID; the
caller never retries.
"""

from typing import Any

import httpx

from integrations.base import Notifier, register_notifier

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


@register_notifier
class TwilioSmsNotifier(Notifier):
    """Send SMS alerts to a single on-call number."""

    channel = "sms"

    def __init__(self, config: dict[str, Any] | None = None, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config)
        self.account_sid = self.config.get("account_sid", "")
        self.auth_token = self.config.get("auth_token", "")
        self.messaging_service_sid = self.config.get("messaging_service_sid", "")
        self.to_number = self.config.get("to_number", "")
        self.timeout = float(self.config.get("timeout", 30.0))
        self._transport = transport

    async def send(self, message: str) -> str | None:
        url = f"{TWILIO_API_URL}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url,
                    auth=(self.account_sid, self.auth_token),
                    data={
                        "To": self.to_number,
                        "MessagingServiceSid": self.messaging_service_sid,
                        "Body": message,
                    },
                )
            if not response.is_success:
                self.logger.error("sms.rejected", status_code=response.status_code, error=response.text[:500])
                return None
            sid = response.json().get("sid")
            self.logger.info("sms.sent", message_sid=sid)
            return sid
        except (httpx.HTTPError, ValueError) as exc:
            self.logger.error("sms.failed", error=str(exc), exc_info=True)
            return None
