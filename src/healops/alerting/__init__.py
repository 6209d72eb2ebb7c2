"""Alert triage."""

from .triage import (
    AlertTriageProcessor,
    ResolutionPolicy,
    classify_category,
    classify_severity,
    default_resolution_policies,
    priority_for,
)

__all__ = [
    "AlertTriageProcessor",
    "ResolutionPolicy",
    "classify_category",
    "classify_severity",
    "default_resolution_policies",
    "priority_for",
]
