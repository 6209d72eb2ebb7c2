"""Shared exception types for the HealOps engine."""

from __future__ import annotations


class HealOpsError(RuntimeError):
    """Base class for engine errors."""


class ValidationError(HealOpsError, ValueError):
    """Raised when a definition, schedule, rule or policy payload is malformed."""


class NotFoundError(HealOpsError, LookupError):
    """Raised when a referenced workflow, run, schedule, rule or policy is unknown."""


class ExecutionError(HealOpsError):
    """Raised when a step or action fails at runtime."""


class ExecutionTimeoutError(ExecutionError):
    """Raised when a step attempt exceeds its deadline."""


class IntegrationError(HealOpsError):
    """Raised when an upstream integration call fails."""
