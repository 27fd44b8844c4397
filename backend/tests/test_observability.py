import json
import logging
from uuid import UUID

from fastapi.testclient import TestClient

from deliverables.main import app
from deliverables.observability import (
    HANDLER_MARKER,
    JsonFormatter,
    configure_logging,
    reset_request_id,
    sanitize_for_logging,
    set_request_id,
)


def test_request_id_header_is_generated_when_missing() -> None:
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.status_code == 200
    UUID(response.headers["X-Request-ID"])


def test_request_id_header_is_preserved_when_provided() -> None:
    with TestClient(app) as client:
        response = client.get("/health", headers={"X-Request-ID": "job-request-123"})
    assert response.headers.get("X-Request-ID") == "job-request-123"


def test_invalid_request_id_is_replaced() -> None:
    with TestClient(app) as client:
        response = client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    UUID(response.headers["X-Request-ID"])


def test_request_started_log_redacts_sensitive_query_values(caplog) -> None:
    with TestClient(app) as client:
        with caplog.at_level(logging.INFO, logger="deliverables.api"):
            response = client.get("/health?token=supersecret&email=user@example.org&q=public")
    assert response.status_code == 200

    started = [record for record in caplog.records if getattr(record, "event", None) == "request_started"]
    assert started
    query = started[-1].query
    assert query["token"] == "[REDACTED]"
    assert query["email"] == "[REDACTED]"
    assert query["q"] == "public"


def test_sanitize_for_logging_redacts_signed_urls_and_keys() -> None:
    payload = {
        "notes": (
            "Download local-signed://1f2e-3d4c or "
            "https://bucket.s3.amazonaws.com/a.pdf?X-Amz-Signature=abcdef&X-Amz-Expires=60 "
            "as user@example.org with AKIA" "ABCDEFGHIJKLMNOP"
        ),
        "signed_url": "https://anything",
        "AWS_SECRET_ACCESS_KEY": "abc",
        "storage_key": "ab/abc.pdf",
        "content": b"%PDF-1.7",
    }
    sanitized = sanitize_for_logging(payload, max_string_length=2000)
    notes = sanitized["notes"]

    assert "local-signed://[REDACTED]" in notes
    assert "X-Amz-Signature=[REDACTED]" in notes
    assert "X-Amz-Expires=60" in notes
    assert "[REDACTED_EMAIL]" in notes
    assert "[REDACTED_AWS_ACCESS_KEY]" in notes
    assert sanitized["signed_url"] == "[REDACTED]"
    assert sanitized["AWS_SECRET_ACCESS_KEY"] == "[REDACTED]"
    assert sanitized["storage_key"] == "ab/abc.pdf"
    assert sanitized["content"] == "[8 bytes]"


def test_json_formatter_includes_request_id_and_extra_fields() -> None:
    token = set_request_id("req-42")
    try:
        record = logging.LogRecord("deliverables.test", logging.INFO, __file__, 1, "artifact_stored", None, None)
        record.event = "artifact_stored"
        record.storage_key = "ab/abc.pdf"
        payload = json.loads(JsonFormatter().format(record))
    finally:
        reset_request_id(token)

    assert payload["message"] == "artifact_stored"
    assert payload["request_id"] == "req-42"
    assert payload["event"] == "artifact_stored"
    assert payload["storage_key"] == "ab/abc.pdf"


def test_configure_logging_installs_a_single_handler() -> None:
    root = logging.getLogger()
    previous_level = root.level
    try:
        configure_logging("DEBUG")
        configure_logging("WARNING")
        marked = [handler for handler in root.handlers if getattr(handler, HANDLER_MARKER, False)]
        assert len(marked) == 1
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous_level)
