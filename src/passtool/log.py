"""Logging setup for PassTool.

Library modules log through ``logging.getLogger(__name__)`` and never emit
passphrases, digests, keys or ciphertext tokens.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "passtool"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a rich handler to the package logger (idempotent)."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)

    return logger
