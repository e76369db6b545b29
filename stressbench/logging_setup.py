"""
Logging bootstrap for an application session.
"""

import logging

from stressbench.config import settings

_configured = False


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging from settings.

    Safe to call more than once; only the first call installs handlers.

    Args:
        level: Optional override for ``settings.LOG_LEVEL``
    """
    global _configured

    if _configured:
        return

    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(settings.LOG_FILE)
            if settings.LOG_FILE
            else logging.NullHandler(),
        ],
    )

    # Connection-level chatter from the HTTP stack is rarely useful under load.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _configured = True
