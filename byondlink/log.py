from __future__ import annotations

import logging
import sys

LOGGER_NAME = "byondlink"


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Attach a single stdout handler to the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return logger
