"""Logger factory shared by every HealOps component."""

from __future__ import annotations

import logging
import sys

from .errors import ValidationError

_ROOT_NAME = "healops"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT_NAME)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("[%(name)s] %(levelname)s %(message)s"))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
        root.propagate = False
    return root


def parse_level(name: str) -> int:
    """Map a level name such as ``debug`` to its ``logging`` constant."""

    level = logging.getLevelName(str(name).strip().upper())
    if not isinstance(level, int):
        raise ValidationError(f"Unknown log level: {name!r}")
    return level


def configure_logging(level: str) -> None:
    """Apply the configured level to every ``healops.*`` logger."""

    _configure_root().setLevel(parse_level(level))


def get_logger(component: str) -> logging.Logger:
    """Return the ``healops.<component>`` logger, installing the stdout handler once."""

    _configure_root()
    return logging.getLogger(f"{_ROOT_NAME}.{component}")
