"""Tests for JSON logging and request correlation."""

from __future__ import annotations

import json
import logging

from tracker_auth.core.logger import JSONFormatter, ensure_request_id


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("tracker_auth.test", logging.INFO, __file__, 1, "hello %s", ("x",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_renders_message_and_extras():
    line = JSONFormatter().format(_record(request_id="rid-1", status=200, elapsed_ms=1.5))

    payload = json.loads(line)
    assert payload["message"] == "hello x"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "rid-1"
    assert payload["status"] == 200
    assert payload["elapsed_ms"] == 1.5


def test_request_id_is_taken_from_header(app):
    with app.test_request_context(headers={"X-Correlation-ID": "corr-123"}):
        assert ensure_request_id() == "corr-123"
        assert ensure_request_id() == "corr-123"


def test_request_id_is_generated_when_absent(app):
    with app.test_request_context():
        generated = ensure_request_id()
        assert generated
        assert ensure_request_id() == generated


def test_responses_echo_request_id(client):
    response = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_each_request_is_logged_once(client, caplog):
    with caplog.at_level(logging.INFO, logger="tracker_auth.request"):
        client.get("/api/health")

    lines = [r for r in caplog.records if r.name == "tracker_auth.request"]
    assert len(lines) == 1
    assert lines[0].method == "GET"
    assert lines[0].path == "/api/health"
    assert lines[0].status == 200
    assert lines[0].elapsed_ms is not None


def test_unsafe_request_id_is_replaced(app):
    with app.test_request_context(headers={"X-Request-ID": "evil\tid with spaces"}):
        generated = ensure_request_id()
        assert generated != "evil\tid with spaces"
        assert len(generated) == 36


def test_request_ids_do_not_leak_between_requests(client):
    first = client.get("/api/health", headers={"X-Request-ID": "first-id"})
    second = client.get("/api/health", headers={"X-Request-ID": "second-id"})
    third = client.get("/api/health")

    assert first.headers["X-Request-ID"] == "first-id"
    assert second.headers["X-Request-ID"] == "second-id"
    assert third.headers["X-Request-ID"] not in {"first-id", "second-id"}


def test_request_id_is_scoped_to_its_request_context(app):
    with app.test_request_context(headers={"X-Request-ID": "outer-1"}):
        assert ensure_request_id() == "outer-1"
    with app.test_request_context(headers={"X-Correlation-ID": "outer-2"}):
        assert ensure_request_id() == "outer-2"
