"""API package: provides FastAPI dependencies and route definitions for the application."""

from .dependencies import get_current_user_id, get_db_session, get_import_service  # noqa: F401
from .routes import router  # noqa: F401
