"""Logging configuration shared by the CLI and the worker."""

import logging
import sys
from typing import Optional

from aerolog_core.settings import get_settings

JSON_FORMAT = '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}'
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None):
    """Configure root logging to stdout in the configured format."""
    settings = get_settings()
    logging.basicConfig(
        level=level or settings.log_level,
        format=JSON_FORMAT if settings.log_format == "json" else TEXT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
