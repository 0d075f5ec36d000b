"""
Remote collaborators package.

Pluggable clients the cutover engine drives:
  - Azure Logic Apps           (workflow state + run history)
  - Twilio SMS / SendGrid email (alert notifications)
  - log                        (local development only)

Usage:
    from integrations import build_notifier, build_workflow_client

    workflows = build_workflow_client(settings)
    notifier = build_notifier(settings)
    await notifier.send("CUTOVER STARTED: ToryBurch-850")
"""

from integrations.base import (
    LogNotifier,
    Notifier,
    RunCounts,
    SetStateResult,
    WorkflowClient,
    WorkflowState,
    get_notifier,
    register_notifier,
)
from integrations.email import SendGridEmailNotifier
from integrations.logic_apps import LogicAppClient
from integrations.twilio_sms import TwilioSmsNotifier


def build_workflow_client(settings) -> WorkflowClient:
    return LogicAppClient.from_settings(settings)


def build_notifier(settings) -> Notifier:
    """Return the notifier for ``settings.notification_channel`` with its credentials."""
    channel = settings.notification_channel.strip().lower()
    configs = {
        "sms": {
            "account_sid": settings.twilio_account_sid,
            "auth_token": settings.twilio_auth_token,
            "messaging_service_sid": settings.twilio_messaging_service_sid,
            "to_number": settings.alert_phone_number,
            "timeout": settings.remote_timeout_seconds,
        },
        "email": {
            "api_key": settings.sendgrid_api_key,
            "from_email": settings.alert_from_email,
            "to_email": settings.alert_to_email,
        },
        "log": {},
    }
    return get_notifier(channel, configs.get(channel, {}))


__all__ = [
    "LogNotifier",
    "LogicAppClient",
    "Notifier",
    "RunCounts",
    "SendGridEmailNotifier",
    "SetStateResult",
    "TwilioSmsNotifier",
    "WorkflowClient",
    "WorkflowState",
    "build_notifier",
    "build_workflow_client",
    "get_notifier",
    "register_notifier",
]
