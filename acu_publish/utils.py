"""Shared helpers for the publisher modules."""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the root handler on first use."""
    global _configured

    if not _configured:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
        _configured = True

    return logging.getLogger(name)


def env_flag(value: Optional[str]) -> bool:
    """Interpret a workflow input string such as "true" or "1" as a boolean."""
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes")
