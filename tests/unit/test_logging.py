from __future__ import annotations

import json
import logging

from mentor_meetings.common.logging import (
    JsonFormatter,
    bind_request_id,
    current_request_id,
    reset_request_id,
)


def _record(msg: str = "meeting_created", payload: dict | None = None) -> logging.LogRecord:
    record = logging.LogRecord("mentor-meetings", logging.INFO, __file__, 1, msg, None, None)
    if payload is not None:
        record.payload = payload
    return record


def test_json_formatter_includes_payload_without_request_id() -> None:
    out = json.loads(JsonFormatter().format(_record(payload={"meeting_id": "m-1"})))
    assert out["msg"] == "meeting_created"
    assert out["payload"] == {"meeting_id": "m-1"}
    assert "request_id" not in out


def test_json_formatter_adds_bound_request_id() -> None:
    token = bind_request_id("req-42")
    try:
        out = json.loads(JsonFormatter().format(_record()))
    finally:
        reset_request_id(token)

    assert out["request_id"] == "req-42"
    assert current_request_id() is None
