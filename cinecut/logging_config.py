from __future__ import annotations

import logging

from cinecut.config import LoggingSettings


def configure_logging(settings: LoggingSettings, *, verbose: bool = False) -> None:
    """Configure process-wide logging once at startup; ``verbose`` forces DEBUG."""

    level = logging.DEBUG if verbose else getattr(logging, settings.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.format, force=True)
