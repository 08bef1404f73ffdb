"""Logging setup for the Poetic Vault API.

Usage:
    from logging_config import configure_logging
    configure_logging("INFO")
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the root logger.

    Calling it again only adjusts the level, so reloads under uvicorn do not
    stack handlers.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if any(getattr(h, "_poetic_vault", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._poetic_vault = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # pymongo's heartbeat chatter drowns out request logs at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)
