"""Process-wide logging configuration."""
from __future__ import annotations

import logging
import sys


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging for the service.

    Logs are written to stdout in a format suitable for systemd journald.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger(__name__).info("Logging initialized at %s level", log_level)
