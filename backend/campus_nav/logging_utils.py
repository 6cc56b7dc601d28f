import logging
from pathlib import Path
from typing import Any, Optional

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "campus_nav"


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    # Prevent duplicate handlers (common with reloaders)
    if getattr(logger, "_configured", False):
        return logger

    logger.setLevel(_parse_level(settings.log_level))
    logger.propagate = False

    formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)

    if settings.log_dir:
        try:
            log_dir = Path(settings.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_dir / "campus_nav.log.jsonl", encoding="utf-8")
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError:
            logger.warning("log_dir_unwritable", extra={"log_dir": settings.log_dir})

    logger._configured = True  # type: ignore[attr-defined]
    return logger


LOGGER: Optional[logging.Logger] = None


def _logger() -> logging.Logger:
    global LOGGER
    if LOGGER is None:
        LOGGER = get_logger()
    return LOGGER


def log_event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    # Structured: event is message + a top-level key
    _logger().log(level, event, extra={"event": event, **fields})
