"""Shared fixtures: a throwaway SQLite database, seeded reference data and file builders."""

import io
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

_TMP_DIR = Path(tempfile.mkdtemp(prefix="expense-import-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["LOG_DIR"] = str(_TMP_DIR / "logs")

import openpyxl  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.db import Base, Category, User, Vendor, get_engine, get_session_factory  # noqa: E402
from app.services.file_parser import HEADERS  # noqa: E402

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

VALID_ROW = {
    "Parent ID": "P-001",
    "Sub-ID": "S-01",
    "Vendor": "Acme Supplies",
    "Description": "Printer paper",
    "Type": "Out",
    "Amount (Before VAT)": "100",
    "VAT Amount": "10",
    "Amount (After VAT)": "110",
    "Currency": "USD",
    "Transaction Date": "2024-01-15",
    "Category": "Office",
    "Payment Method": "BANK_TRANSFER",
    "Invoice Link": "https://example.com/inv/1",
}


def make_row(**overrides: str) -> dict[str, str]:
    """Return a valid row keyed by header, with some columns overridden by header name."""
    row = dict(VALID_ROW)
    row.update(overrides)
    return row


def build_csv(rows: list[dict[str, str]], headers: list[str] | None = None) -> bytes:
    """Render rows as CSV text with the given (or standard) header line."""
    headers = headers or HEADERS
    lines = [",".join(headers)]
    lines.extend(",".join(row.get(header, "") for header in headers) for row in rows)
    return ("\n".join(lines) + "\n").encode("utf-8")


def build_xlsx(rows: list[list[object]]) -> bytes:
    """Build an XLSX workbook whose first sheet holds the header row plus the given rows."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(HEADERS)
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def xlsx_values(row: dict[str, str]) -> list[object]:
    """Return a header-keyed row as a positional list for XLSX."""
    return [row.get(header) for header in HEADERS]


@pytest.fixture(autouse=True)
def fresh_db() -> Iterator[None]:
    """Recreate every table and seed users, vendors and categories for each test."""
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    with get_session_factory()() as session:
        session.add_all(
            [
                User(id=USER_ID, email="ana@example.com", name="Ana"),
                User(id=OTHER_USER_ID, email="ben@example.com", name="Ben"),
                Vendor(name="Acme Supplies"),
                Vendor(name="Globex"),
                Category(name="Office"),
                Category(name="Travel"),
            ]
        )
        session.commit()
    yield


@pytest.fixture
def session() -> Iterator[Session]:
    """Provide a session on the test database."""
    with get_session_factory()() as db_session:
        yield db_session
