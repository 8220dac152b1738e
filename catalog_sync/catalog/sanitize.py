"""Name and number sanitizers for supplier data."""

from __future__ import annotations

import logging
import math
import re
from numbers import Real
from typing import Any

log = logging.getLogger("catalog.sanitize")

_EXCISE_RE = re.compile(r"\s*\(акциз\)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
# Длинные «сертификатные» названия из 1С заменяем короткими
_LEGACY_NAMES: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"Сертификат на Безникотиновую Жидкость для ЭСДН", re.IGNORECASE),
        "Жидкость для ЭСДН",
    ),
    (re.compile(r"Сертификат на Жидкость для ЭС(?!ДН)", re.IGNORECASE), "Жидкость для ЭСДН"),
)


def clean_name(name: Any) -> str:
    """Strip the excise marker, shorten legacy names and normalise spaces."""

    if not name:
        return ""
    cleaned = str(name)
    cleaned = _EXCISE_RE.sub("", cleaned)
    for pattern, replacement in _LEGACY_NAMES:
        cleaned = pattern.sub(replacement, cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def parse_locale_number(value: Any) -> float | None:
    """Parse ``"1 234,50"``-style numbers; ``None`` means "no value", not zero."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Real):
        return float(value)

    text = _WHITESPACE_RE.sub("", str(value))
    if not text:
        return None
    text = text.replace(",", ".", 1)
    try:
        number = float(text)
    except ValueError:
        log.debug("unparsable number %r", value)
        return None
    return number if math.isfinite(number) else None


__all__ = ["clean_name", "parse_locale_number"]
