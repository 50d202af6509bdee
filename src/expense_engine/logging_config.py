"""Logging setup for the expense engine."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the ``expense_engine`` logger hierarchy.

    Idempotent: calling it again only updates the level.
    """
    root = logging.getLogger("expense_engine")
    root.setLevel(level)

    if not any(getattr(h, "_expense_engine", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._expense_engine = True  # type: ignore[attr-defined]
        root.addHandler(handler)
