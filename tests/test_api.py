"""API integration tests for the Expense Import Service."""

from collections.abc import Iterator

import pytest
from conftest import OTHER_USER_ID, USER_ID, VALID_ROW, build_csv, build_xlsx, make_row, xlsx_values
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from app.core.db import Expense, get_session_factory
from main import app

HTTP_200_OK = 200
HTTP_202_ACCEPTED = 202
HTTP_400_BAD_REQUEST = 400
HTTP_401_UNAUTHORIZED = 401
HTTP_404_NOT_FOUND = 404
HTTP_413_TOO_LARGE = 413

CSV_MIME = "text/csv"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Provide a TestClient with the app lifespan running."""
    with TestClient(app) as test_client:
        yield test_client


def auth(user_id: str = USER_ID) -> dict[str, str]:
    """Return the identity header for a user."""
    return {"X-User-Id": user_id}


def expect_status(response: object, expected: int) -> None:
    """Raise if the response status differs from the expected one."""
    if response.status_code != expected:
        msg = f"Expected status {expected}, got {response.status_code}: {response.text}"
        raise AssertionError(msg)


def count_expenses() -> int:
    """Count all expense rows."""
    with get_session_factory()() as session:
        return session.scalar(select(func.count()).select_from(Expense))


def test_health(client: TestClient) -> None:
    """Test the /health endpoint returns status ok."""
    response = client.get("/health")
    expect_status(response, HTTP_200_OK)
    if response.json() != {"status": "ok"}:
        msg = f"Expected response {{'status': 'ok'}}, got {response.json()}"
        raise AssertionError(msg)


def test_scalar_docs(client: TestClient) -> None:
    """Test the /scalar endpoint returns the API reference page."""
    response = client.get("/scalar")
    expect_status(response, HTTP_200_OK)
    if "openapi" not in response.text:
        msg = "Expected 'openapi' in response text"
        raise AssertionError(msg)


def test_preview_reports_sample_and_errors_without_saving(client: TestClient) -> None:
    """Preview returns headers, the first five rows and all errors, and persists nothing."""
    rows = [make_row(Description=f"Item {i}") for i in range(6)] + [make_row(Vendor="")]
    files = {"file": ("expenses.csv", build_csv(rows), CSV_MIME)}
    response = client.post("/import/preview", files=files, headers=auth())
    expect_status(response, HTTP_200_OK)
    body = response.json()
    if body["fileName"] != "expenses.csv" or body["totalRows"] != 7:  # noqa: PLR2004
        msg = f"Unexpected preview header fields: {body}"
        raise AssertionError(msg)
    if len(body["headers"]) != 13 or body["headers"][2] != "Vendor":  # noqa: PLR2004
        msg = f"Unexpected headers: {body['headers']}"
        raise AssertionError(msg)
    if len(body["sampleData"]) != 5 or body["sampleData"][0]["Vendor"] != "Acme Supplies":  # noqa: PLR2004
        msg = f"Unexpected sample data: {body['sampleData']}"
        raise AssertionError(msg)
    if [(err["row"], err["field"]) for err in body["errors"]] != [(7, "vendor")]:
        msg = f"Unexpected errors: {body['errors']}"
        raise AssertionError(msg)
    if count_expenses() != 0 or client.get("/import/history", headers=auth()).json() != []:
        msg = "Preview must not persist anything"
        raise AssertionError(msg)


def test_preview_and_commit_report_the_same_errors(client: TestClient) -> None:
    """Validation errors from preview and from the committed job are identical."""
    rows = [VALID_ROW, make_row(Category="Snacks"), make_row(**{"Amount (After VAT)": "abc"}), make_row(Type="x")]
    data = build_csv(rows)
    preview = client.post("/import/preview", files={"file": ("e.csv", data, CSV_MIME)}, headers=auth()).json()
    job = client.post("/import/upload", files={"file": ("e.csv", data, CSV_MIME)}, headers=auth()).json()
    status = client.get(f"/import/status/{job['id']}").json()
    if preview["errors"] != status["errors"]:
        msg = f"Preview errors {preview['errors']} differ from job errors {status['errors']}"
        raise AssertionError(msg)


def test_upload_returns_pending_job_and_processes_in_background(client: TestClient) -> None:
    """Upload answers 202 with a pending job that has completed once the task ran."""
    data = build_csv([VALID_ROW, make_row(Category="Snacks")])
    response = client.post("/import/upload", files={"file": ("expenses.csv", data, CSV_MIME)}, headers=auth())
    expect_status(response, HTTP_202_ACCEPTED)
    job = response.json()
    if job["status"] != "pending" or job["progress"] != 0 or job["fileSize"] != len(data):
        msg = f"Unexpected job at creation: {job}"
        raise AssertionError(msg)

    status_resp = client.get(f"/import/status/{job['id']}")
    expect_status(status_resp, HTTP_200_OK)
    status = status_resp.json()
    expected = {
        "status": "completed",
        "progress": 100,
        "totalRows": 2,
        "processedRows": 2,
        "successfulRows": 1,
        "errorRows": 1,
        "errorCount": 1,
    }
    got = {key: status[key] for key in expected}
    if got != expected:
        msg = f"Expected {expected}, got {got}"
        raise AssertionError(msg)
    if status["errors"][0]["field"] != "category" or status["completedAt"] is None:
        msg = f"Unexpected final snapshot: {status}"
        raise AssertionError(msg)


def test_xlsx_upload(client: TestClient) -> None:
    """XLSX uploads are imported the same way as CSV."""
    data = build_xlsx([xlsx_values(VALID_ROW), xlsx_values(make_row(Vendor="Globex"))])
    job = client.post("/import/upload", files={"file": ("expenses.xlsx", data, XLSX_MIME)}, headers=auth()).json()
    status = client.get(f"/import/status/{job['id']}").json()
    if status["status"] != "completed" or status["successfulRows"] != 2:  # noqa: PLR2004
        msg = f"Unexpected status: {status}"
        raise AssertionError(msg)


def test_same_file_twice_creates_two_jobs_and_duplicate_expenses(client: TestClient) -> None:
    """Imports are not idempotent: each upload creates its own job and its own expenses."""
    data = build_csv([VALID_ROW])
    first = client.post("/import/upload", files={"file": ("e.csv", data, CSV_MIME)}, headers=auth()).json()
    second = client.post("/import/upload", files={"file": ("e.csv", data, CSV_MIME)}, headers=auth()).json()
    if first["id"] == second["id"]:
        msg = "Expected two distinct jobs"
        raise AssertionError(msg)
    if count_expenses() != 2:  # noqa: PLR2004
        msg = f"Expected duplicate expenses, got {count_expenses()}"
        raise AssertionError(msg)


def test_history_is_per_user_and_newest_first(client: TestClient) -> None:
    """History lists only the caller's jobs, most recent first."""
    data = build_csv([VALID_ROW])
    ids = [
        client.post("/import/upload", files={"file": (f"e{i}.csv", data, CSV_MIME)}, headers=auth()).json()["id"]
        for i in range(3)
    ]
    client.post("/import/upload", files={"file": ("other.csv", data, CSV_MIME)}, headers=auth(OTHER_USER_ID))
    response = client.get("/import/history", headers=auth())
    expect_status(response, HTTP_200_OK)
    history = [job["id"] for job in response.json()]
    if history != list(reversed(ids)):
        msg = f"Expected {list(reversed(ids))}, got {history}"
        raise AssertionError(msg)


def test_status_not_found(client: TestClient) -> None:
    """Unknown job ids return 404."""
    expect_status(client.get("/import/status/does-not-exist"), HTTP_404_NOT_FOUND)


def test_rejects_bad_mime_type(client: TestClient) -> None:
    """Uploads with an unaccepted MIME type are rejected and no job is created."""
    files = {"file": ("notes.txt", b"hello", "text/plain")}
    response = client.post("/import/upload", files=files, headers=auth())
    expect_status(response, HTTP_400_BAD_REQUEST)
    if response.json()["detail"] != "Only CSV and Excel files are allowed":
        msg = f"Unexpected detail: {response.json()}"
        raise AssertionError(msg)
    if client.get("/import/history", headers=auth()).json() != []:
        msg = "No job should have been created"
        raise AssertionError(msg)


def test_rejects_unknown_or_missing_user(client: TestClient) -> None:
    """Unknown users get 400, missing identity gets 401."""
    files = {"file": ("e.csv", build_csv([VALID_ROW]), CSV_MIME)}
    response = client.post("/import/upload", files=files, headers=auth("ghost"))
    expect_status(response, HTTP_400_BAD_REQUEST)
    if response.json()["detail"] != "User not found":
        msg = f"Unexpected detail: {response.json()}"
        raise AssertionError(msg)
    expect_status(client.post("/import/upload", files=files), HTTP_401_UNAUTHORIZED)


def test_rejects_oversized_file(client: TestClient) -> None:
    """Files over 10 MiB are rejected with 413."""
    data = b"x" * (10 * 1024 * 1024 + 1)
    response = client.post("/import/preview", files={"file": ("big.csv", data, CSV_MIME)}, headers=auth())
    expect_status(response, HTTP_413_TOO_LARGE)


def test_preview_of_unreadable_workbook(client: TestClient) -> None:
    """Preview of a broken workbook is a 400 with a parse message."""
    files = {"file": ("broken.xlsx", b"garbage", XLSX_MIME)}
    response = client.post("/import/preview", files=files, headers=auth())
    expect_status(response, HTTP_400_BAD_REQUEST)
    if not response.json()["detail"].startswith("Failed to parse file"):
        msg = f"Unexpected detail: {response.json()}"
        raise AssertionError(msg)


def test_preview_of_unsupported_extension_is_a_parse_failure(client: TestClient) -> None:
    """A legacy .xls upload passes the MIME check but previews as a parse failure."""
    files = {"file": ("legacy.xls", build_csv([VALID_ROW]), "application/vnd.ms-excel")}
    response = client.post("/import/preview", files=files, headers=auth())
    expect_status(response, HTTP_400_BAD_REQUEST)
    expected = "Failed to parse file: Unsupported file format. Only CSV and Excel files are allowed."
    if response.json()["detail"] != expected:
        msg = f"Unexpected detail: {response.json()}"
        raise AssertionError(msg)
