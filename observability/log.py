"""
observability/log.py — One place to configure stdlib logging.

Modules never configure logging themselves; they only call
logging.getLogger(__name__). Entry points call configure_logging() once.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

NOISY_LOGGERS = ("httpx", "httpcore", "openai._base_client", "asyncio", "playwright")

_HANDLER_NAME = "llm-search"


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """
    Install a single stream handler on the root logger.

    level defaults to settings.log_level. Calling this again only updates
    the level; it never stacks a second handler.
    """
    if level is None:
        from config import settings
        level = settings.log_level
    if isinstance(level, str):
        level = level.upper()

    root = logging.getLogger()
    root.setLevel(level)

    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
