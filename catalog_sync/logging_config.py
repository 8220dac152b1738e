"""Logging setup: console plus rotating files, with supplier secrets masked."""

from __future__ import annotations

import logging
import re
from contextlib import suppress
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAIN_LOG = "catalog_sync.log"
ERRORS_LOG = "errors.log"

# Логгеры, через которые проходят учётные данные поставщика
SCRUBBED_LOGGERS = ("supplier", "audit")
QUIET_LOGGERS = {"httpx": logging.WARNING, "apscheduler": logging.WARNING, "asyncio": logging.INFO}

_MASKS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE), "<email>"),
    (re.compile(r"(Basic\s+)[A-Za-z0-9+/=]{8,}"), r"\1<credentials>"),
    (re.compile(r"((?:password|passwd|token)\s*[=:]\s*)[^\s,;]{2,}", re.IGNORECASE), r"\1<secret>"),
)


def mask_secrets(text: str) -> str:
    for pattern, replacement in _MASKS:
        text = pattern.sub(replacement, text)
    return text


class SecretScrubbingFilter(logging.Filter):
    """Renders the record once and masks credentials in the final message."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            rendered = record.getMessage()
        except (TypeError, ValueError):
            rendered = str(record.msg)
        record.msg = mask_secrets(rendered)
        record.args = None
        return True


def resolve_log_level(value: str | int) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else logging.INFO


def _rotating(path: Path, *, max_bytes: int, backups: int, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    return handler


def _reset_root(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        with suppress(Exception):
            handler.close()


def _attach_scrubber(names: tuple[str, ...]) -> None:
    scrubber = SecretScrubbingFilter()
    for name in names:
        logger = logging.getLogger(name)
        for existing in [f for f in logger.filters if isinstance(f, SecretScrubbingFilter)]:
            logger.removeFilter(existing)
        logger.addFilter(scrubber)


def setup_logging(log_dir: str = "logs", level: int = logging.INFO) -> None:
    """Route everything to stderr and ``catalog_sync.log``; warnings also to ``errors.log``.

    Safe to call repeatedly: previous root handlers are closed first.
    """

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    _reset_root(root)
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(level)
    errors = _rotating(log_path / ERRORS_LOG, max_bytes=2_000_000, backups=3, level=logging.WARNING)
    errors.addFilter(SecretScrubbingFilter())
    handlers = (
        console,
        _rotating(log_path / MAIN_LOG, max_bytes=5_000_000, backups=5, level=level),
        errors,
    )
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)
    _attach_scrubber(SCRUBBED_LOGGERS)

    root.info(
        "logging initialized level=%s main=%s errors=%s",
        logging.getLevelName(level),
        (log_path / MAIN_LOG).resolve(),
        (log_path / ERRORS_LOG).resolve(),
    )


__all__ = ["SecretScrubbingFilter", "mask_secrets", "resolve_log_level", "setup_logging"]
