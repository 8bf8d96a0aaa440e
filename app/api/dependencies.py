"""FastAPI dependencies for DI (settings, DB session, current user, import service).

This module provides dependency injection helpers so the import endpoints stay thin and can be
exercised with a test database.
"""

from collections.abc import Iterator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.settings import get_settings
from app.services.import_service import ImportService


def get_db_session() -> Iterator[Session]:
    """Provide a SQLAlchemy session for dependency injection."""
    yield from get_db()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the caller's user id from the X-User-Id header set by the auth gateway."""
    if not x_user_id:
        raise HTTPException(401, "Missing X-User-Id header")
    return x_user_id


def get_import_service(session: Session = Depends(get_db_session)) -> ImportService:
    """Provide an ImportService bound to the request's session."""
    return ImportService(session, get_settings())
