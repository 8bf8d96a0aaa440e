"""Main entrypoint and application factory for the Expense Import Service API.

This module initializes the FastAPI application, configures logging, creates the database tables,
and exposes the Scalar API reference endpoint for interactive OpenAPI documentation. It also
includes the main entrypoint for running the app with Uvicorn.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from scalar_fastapi import get_scalar_api_reference
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes import router
from app.core.db import init_db
from app.core.settings import get_settings
from app.core.utils import LOGGER_NAME, ensure_dir, get_logger


# --- Logging Setup ---
def setup_logging() -> None:
    """Configure colored console logging plus a plain log file for the import pipeline."""
    settings = get_settings()
    ensure_dir(settings.log_dir)
    logger = get_logger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    # Add file handler for persistent logs (not colorized)
    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(Path(settings.log_dir) / "import_processing.log")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(file_handler)
    logger.propagate = False


setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler to create the database tables."""
    _ = app  # Silence unused argument warning
    settings = get_settings()
    if settings.database_url.startswith("sqlite:///"):
        ensure_dir(Path(settings.database_url.removeprefix("sqlite:///")).parent)
    try:
        init_db()
    except SQLAlchemyError:
        get_logger(LOGGER_NAME).exception("Failed to create database tables")
        raise
    yield


app = FastAPI(
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    title="Expense Import Service API",
    description="""
    The Expense Import Service API validates bulk expense files (CSV or XLSX) and imports them as draft expenses in the background.

    **Endpoints:**
    - `POST /import/preview`: Parse and validate a file without saving anything.
    - `POST /import/upload`: Upload a file and start an import job. Returns the pending job.
    - `GET /import/status/{{job_id}}`: Check the progress and errors of an import job.
    - `GET /import/history`: List the caller's import jobs, newest first.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
    version="1.0.0",
)
app.include_router(router)


@app.get("/scalar", include_in_schema=False)
async def scalar_docs() -> HTMLResponse:
    """Return Scalar API reference."""
    return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)
