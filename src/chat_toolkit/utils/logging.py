"""
Loguru sink setup.

Library modules log through 'from loguru import logger' and never configure
sinks themselves. Applications call 'configure_logging' once at start-up to
replace loguru's default handler with a single stderr sink at the wanted level.
"""

import sys

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {name}:{function} - {message}",
    )
