"""Logging setup for Versa.

Modules log through ``logging.getLogger(__name__)``; nothing is emitted
until an application (the CLI, or an embedding editor) calls
``configure_logging``.
"""

import logging
import logging.handlers
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_ROOT_LOGGER = "versa"


def configure_logging(level: str | int = "WARNING", log_file: Path | None = None) -> logging.Logger:
    """Attach handlers to the ``versa`` logger.

    Safe to call more than once; previously attached handlers are replaced.

    Args:
        level: Level name or number for the versa logger
        log_file: Optional path for a rotating file log (1 MB x 3)

    Returns:
        The configured ``versa`` logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger(_ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.setLevel(level)
    root.propagate = False

    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(stream)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    return root
