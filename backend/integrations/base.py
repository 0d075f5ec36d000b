"""
Remote Collaborator Interfaces — Abstract Base Classes

The cutover engine talks to two kinds of remote systems:

  - a workflow host that can report and change whether a named workflow
    is enabled, and count its recent runs (Azure Logic Apps in production)
  - a notification channel that delivers a short text alert to a fixed
    destination (Twilio SMS or SendGrid email)

Both are expected to swallow their own transport errors: the engine treats
"no answer" as "no evidence", never as an exception.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger()


# ── Workflow types ─────────────────────────────────────────────────────────


class WorkflowState(str, Enum):
    """Closed set of remote workflow states. Lookup failure is ``None``, not a third state."""

    ENABLED = "Enabled"
    DISABLED = "Disabled"


@dataclass(frozen=True)
class RunCounts:
    """Runs observed for one workflow over a lookback window."""

    total: int = 0
    failed: int = 0


@dataclass(frozen=True)
class SetStateResult:
    success: bool
    error: str | None = None


# ── Abstract collaborators ─────────────────────────────────────────────────


class WorkflowClient(ABC):
    """Read and change the enabled state of named workflows in a resource scope."""

    @abstractmethod
    async def get_state(self, resource_group: str, workflow_name: str) -> WorkflowState | None:
        """Return the current state, or None when the lookup failed."""
        ...

    @abstractmethod
    async def set_state(self, resource_group: str, workflow_name: str, state: WorkflowState) -> SetStateResult:
        """Request a state change. Never raises for remote errors."""
        ...

    @abstractmethod
    async def get_recent_runs(self, resource_group: str, workflow_name: str, minutes_back: int = 30) -> RunCounts:
        """Count runs started in the last ``minutes_back`` minutes. Zero counts on failure."""
        ...


class Notifier(ABC):
    """Send a short text alert to the configured destination."""

    channel: str = ""

    def __init__(self, config: dict[str, Any] | None = None):
        self.config = config or {}
        self.logger = logger.bind(notifier=self.channel)

    @abstractmethod
    async def send(self, message: str) -> str | None:
        """Deliver ``message``. Returns a delivery id, or None when delivery failed."""
        ...


# ── Notifier registry ──────────────────────────────────────────────────────

_NOTIFIER_REGISTRY: dict[str, type[Notifier]] = {}


def register_notifier(notifier_cls: type[Notifier]):
    """Decorator: register a notifier class for its channel name."""
    _NOTIFIER_REGISTRY[notifier_cls.channel] = notifier_cls
    return notifier_cls


def get_notifier(channel: str, config: dict[str, Any]) -> Notifier:
    """Factory: return the notifier instance for the given channel."""
    notifier_cls = _NOTIFIER_REGISTRY.get(channel)
    if notifier_cls is None:
        raise ValueError(f"No notifier registered for channel: {channel}")
    return notifier_cls(config=config)


@register_notifier
class LogNotifier(Notifier):
    """Local-only channel: writes the alert to the log instead of delivering it."""

    channel = "log"

    async def send(self, message: str) -> str | None:
        self.logger.info("notify.logged", message=message)
        return "log"
