"""Smoke tests for logging configuration."""

from __future__ import annotations

import logging
from pathlib import Path

from catalog_sync.logging_config import resolve_log_level, setup_logging


def test_setup_logging_creates_files_and_scrubs_secrets(tmp_path) -> None:
    log_dir = tmp_path / "logs"
    setup_logging(log_dir=str(log_dir), level=logging.DEBUG)

    logging.getLogger("catalog.sync").info("hello from test")
    logging.getLogger("catalog.sync").warning("shop s1 failed")
    logging.getLogger("supplier").info(
        "request auth=%s owner=%s password=%s",
        "Basic c2hvcC1ib3Q6czNjcmV0",
        "ops@example.com",
        "hunter22",
    )
    logging.getLogger("audit").error("exclusion added token=%s", "very-secret-token")

    for handler in logging.getLogger().handlers:
        if hasattr(handler, "flush"):
            handler.flush()

    main_log = Path(log_dir) / "catalog_sync.log"
    errors_log = Path(log_dir) / "errors.log"
    assert main_log.exists()
    assert errors_log.exists()

    main_text = main_log.read_text(encoding="utf-8")
    errors_text = errors_log.read_text(encoding="utf-8")

    assert "hello from test" in main_text
    assert "shop s1 failed" in errors_text
    assert "hello from test" not in errors_text
    assert "c2hvcC1ib3Q6czNjcmV0" not in main_text
    assert "ops@example.com" not in main_text
    assert "hunter22" not in main_text
    assert "Basic <credentials>" in main_text
    assert "password=<secret>" in main_text
    assert "very-secret-token" not in errors_text
    assert "token=<secret>" in errors_text


def test_resolve_log_level() -> None:
    assert resolve_log_level("debug") == logging.DEBUG
    assert resolve_log_level("10") == 10
    assert resolve_log_level(logging.WARNING) == logging.WARNING
    assert resolve_log_level("nonsense") == logging.INFO
