"""Core package: provides models, database helpers, settings, and shared utilities."""

from .db import get_db  # noqa: F401
from .models import ImportJobSnapshot, ImportStatus, ParsedRow  # noqa: F401
from .settings import Settings  # noqa: F401
from .utils import get_logger  # noqa: F401
