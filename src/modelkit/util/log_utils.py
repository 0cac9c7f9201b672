"""
Logging setup shared by scripts and applications built on modelkit.
"""

import logging
from pathlib import Path
from typing import Optional

from ..config.base import LoggingConfig


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure the root logger.

    Args:
        config: Logging configuration (defaults to INFO on stderr)
    """
    config = config or LoggingConfig()
    config.validate()

    handlers = [logging.StreamHandler()]
    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.level),
        format=config.format,
        handlers=handlers,
        force=True
    )
