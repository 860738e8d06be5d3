"""Logging setup for the API server.

Usage:
    from logging_config import setup_logging
    setup_logging()

Modules log through ``logging.getLogger(__name__)`` as usual; this only
installs the handler and format on the root logger.
"""

from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "_interpreter_stream"


def setup_logging(level: str = "INFO") -> None:
    """Attach a stderr handler to the root logger. Calling it again is a no-op."""
    root = logging.getLogger()
    if any(getattr(h, "name", None) == _HANDLER_NAME for h in root.handlers):
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.name = _HANDLER_NAME
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(handler)

    # The OpenAI client logs every request through httpx
    for name in ("httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
