"""
Shared helpers.
"""
import logging

from lattice.core import config


_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    The root "lattice" logger is configured once with a stream handler and the
    level from LOG_LEVEL. Applications embedding the engine can reconfigure it
    through the standard logging API.

    Usage:
        log = get_logger(__name__)
        log.info("Registry loaded")
    """
    global _configured
    if not _configured:
        root = logging.getLogger("lattice")
        if not root.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(_FORMAT))
            root.addHandler(handler)
        root.setLevel(config.LOG_LEVEL)
        _configured = True
    return logging.getLogger(name)
