"""Shared utility functions for the Expense Import Service."""

import logging
import re
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import colorlog

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%b %d %Y",
    "%d %b %Y",
    "%B %d, %Y",
)

LOGGER_NAME = "expense-import"
_AMOUNT_NOISE = re.compile(r"[,\s]")


def get_logger(name: str) -> logging.Logger:
    """Get a project logger; all of them share the colorized handler on the root project logger."""
    logger = logging.getLogger(name)
    root = logging.getLogger(LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    root.propagate = False
    return logger


def ensure_dir(path: str | Path) -> None:
    """Ensure a directory exists (like mkdir -p)."""
    Path(path).mkdir(parents=True, exist_ok=True)


def utcnow() -> datetime:
    """Get the current UTC time as an aware datetime."""
    return datetime.now(UTC)


def parse_amount(value: str | None) -> Decimal | None:
    """Parse a user-entered amount, ignoring thousands separators and whitespace.

    Returns None when the value is empty or is not a finite number.
    """
    if value is None:
        return None
    cleaned = _AMOUNT_NOISE.sub("", value)
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_date(value: str | None) -> date | None:
    """Parse a transaction date in any of the accepted formats, or return None."""
    if not value:
        return None
    value = value.strip()
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None
