"""HTTP surface for the HealOps engine."""

from .app import create_app

__all__ = ["create_app"]
