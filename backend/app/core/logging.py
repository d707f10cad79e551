"""Centralized logging setup."""

import logging
import sys


def _handler_exists(logger: logging.Logger, handler_type: type) -> bool:
    return any(isinstance(handler, handler_type) for handler in logger.handlers)


def configure_logging(*, environment: str, log_level: str) -> int:
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(
        "[%(asctime)s.%(msecs)03d] [%(levelname)-5s] [%(name)-20s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not _handler_exists(root, logging.StreamHandler):
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    if environment != "dev":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
        uv_logger.setLevel(level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return level
