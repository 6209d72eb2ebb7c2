"""Action clients for HealOps."""

from .slack import SlackNotificationClient
from .remote import HttpActionClient
from .base import SimulatedActionClient, ActionClient
from .executor import ActionExecutor, ActionRegistry
from .guard import SafetyGuard, DefaultSafetyGuard, GuardDecision

__all__ = [
    "SlackNotificationClient",
    "HttpActionClient",
    "SimulatedActionClient",
    "ActionClient",
    "ActionExecutor",
    "ActionRegistry",
    "SafetyGuard",
    "DefaultSafetyGuard",
    "GuardDecision",
]
