"""Normalization of raw spreadsheet cell values into trimmed strings."""

from datetime import date, datetime
from decimal import Decimal

from app.core.utils import get_logger

logger = get_logger("expense-import.cells")


def _format_number(value: float | int | Decimal) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _decode_object(value: object) -> str | None:
    # rich text
    text = getattr(value, "text", None)
    if text is not None:
        return str(text).strip()
    # formula result or cell wrapper
    if hasattr(value, "value"):
        return decode_cell(value.value)
    if type(value).__str__ is not object.__str__:
        return str(value).strip()
    logger.warning(f"Unhandled cell value type: {type(value).__name__}")
    return None


def decode_cell(value: object) -> str | None:
    """Return a cell's value as a trimmed string, or None when it carries nothing usable.

    Never raises: malformed cells are expected input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float | Decimal):
        return _format_number(value)
    if isinstance(value, str):
        return value.strip()
    try:
        return _decode_object(value)
    except Exception:
        logger.warning(f"Could not decode cell of type {type(value).__name__}", exc_info=True)
        return None
