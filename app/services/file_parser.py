"""Parsing of uploaded CSV and XLSX expense files into ParsedRow records.

Both formats follow the same 13-column contract. CSV files are read by header text, XLSX files
by column position on the first worksheet. XLSX rows whose second cell is empty are treated as
blank and skipped; CSV rows are never skipped, so a blank CSV line reaches validation and fails
the required-field checks.
"""

import io
import zipfile
from pathlib import Path

import openpyxl
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from app.core.exceptions import FileParseError, FileTooLargeError, UnsupportedFileError
from app.core.models import ParsedRow
from app.core.settings import MAX_UPLOAD_BYTES
from app.core.utils import get_logger
from app.services.cell_decoder import decode_cell

logger = get_logger("expense-import.parser")

# (ParsedRow field, column header) in spreadsheet column order
COLUMNS: tuple[tuple[str, str], ...] = (
    ("parent_id", "Parent ID"),
    ("sub_id", "Sub-ID"),
    ("vendor", "Vendor"),
    ("description", "Description"),
    ("type", "Type"),
    ("amount_before_vat", "Amount (Before VAT)"),
    ("vat_amount", "VAT Amount"),
    ("amount_after_vat", "Amount (After VAT)"),
    ("currency", "Currency"),
    ("transaction_date", "Transaction Date"),
    ("category", "Category"),
    ("payment_method", "Payment Method"),
    ("invoice_link", "Invoice Link"),
)
HEADERS: list[str] = [header for _, header in COLUMNS]
HEADER_ALIASES: dict[str, tuple[str, ...]] = {"Type": ("Type (In/Out)",)}

# fields where an absent XLSX cell becomes "" rather than None
_OPTIONAL_FIELDS = frozenset({"parent_id", "sub_id", "invoice_link"})
_BLANK_GUARD_INDEX = 1


def file_extension(file_name: str) -> str:
    """Return the lower-cased extension of a file name, including the dot."""
    return Path(file_name).suffix.lower()


def row_to_display(row: ParsedRow) -> dict[str, str]:
    """Map a ParsedRow back to header -> value, with missing values as empty strings."""
    return {header: getattr(row, field) or "" for field, header in COLUMNS}


class FileParser:
    """Turns the bytes of an upload into an ordered list of ParsedRow."""

    def __init__(self, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        """Initialize the parser with the maximum accepted file size."""
        self.max_bytes = max_bytes

    def parse(self, data: bytes, file_name: str) -> list[ParsedRow]:
        """Parse a CSV or XLSX file, choosing the format from the file extension."""
        if len(data) > self.max_bytes:
            raise FileTooLargeError(len(data), self.max_bytes)
        extension = file_extension(file_name)
        if extension == ".csv":
            rows = self.parse_csv(data)
        elif extension == ".xlsx":
            rows = self.parse_xlsx(data)
        else:
            msg = "Unsupported file format. Only CSV and Excel files are allowed."
            raise UnsupportedFileError(msg)
        logger.info(f"Parsed {len(rows)} rows from {file_name}")
        return rows

    def parse_csv(self, data: bytes) -> list[ParsedRow]:
        """Read a CSV by header names, one ParsedRow per line after the header."""
        try:
            data_frame = pd.read_csv(
                io.BytesIO(data),
                dtype=str,
                index_col=False,
                keep_default_na=False,
                skip_blank_lines=False,
                encoding="utf-8-sig",
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
            msg = f"Could not read CSV: {exc}"
            raise FileParseError(msg) from exc
        data_frame = data_frame.fillna("")
        data_frame.columns = [str(col).strip() for col in data_frame.columns]
        columns = {field: self._resolve_header(header, data_frame.columns) for field, header in COLUMNS}
        rows = []
        for record in data_frame.to_dict(orient="records"):
            values = {field: record[col] for field, col in columns.items() if col is not None}
            rows.append(ParsedRow(**values))
        return rows

    @staticmethod
    def _resolve_header(header: str, available: "pd.Index") -> str | None:
        for candidate in (header, *HEADER_ALIASES.get(header, ())):
            if candidate in available:
                return candidate
        return None

    def parse_xlsx(self, data: bytes) -> list[ParsedRow]:
        """Read the first worksheet by column position, skipping the header row."""
        try:
            workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
            msg = f"Could not read workbook: {exc}"
            raise FileParseError(msg) from exc
        try:
            if not workbook.worksheets:
                msg = "No worksheet found in Excel file"
                raise FileParseError(msg)
            return self._read_sheet(workbook.worksheets[0])
        finally:
            workbook.close()

    def _read_sheet(self, sheet: object) -> list[ParsedRow]:
        rows = []
        try:
            for values in sheet.iter_rows(min_row=2, values_only=True):
                cells = list(values) + [None] * (len(COLUMNS) - len(values))
                if not self._has_content(cells[_BLANK_GUARD_INDEX]):
                    continue
                rows.append(self._xlsx_row(cells))
        except (zipfile.BadZipFile, KeyError, ValueError, SyntaxError) as exc:
            msg = f"Could not read worksheet rows: {exc}"
            raise FileParseError(msg) from exc
        return rows

    @staticmethod
    def _has_content(value: object) -> bool:
        return bool(decode_cell(value))

    @staticmethod
    def _xlsx_row(cells: list[object]) -> ParsedRow:
        values = {}
        for idx, (field, _) in enumerate(COLUMNS):
            decoded = decode_cell(cells[idx])
            if decoded is None and field not in _OPTIONAL_FIELDS:
                decoded = ""
            values[field] = decoded
        return ParsedRow(**values)
