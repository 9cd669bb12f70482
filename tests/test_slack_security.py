import json
import time
from urllib.parse import urlencode

import pytest
from fastapi import HTTPException, Request

from slack_security import compute_signature, parse_slack_body, verify_slack_request


def _build_request(timestamp: str, signature: str) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/slack/events",
        "headers": [
            (b"x-slack-request-timestamp", timestamp.encode("utf-8")),
            (b"x-slack-signature", signature.encode("utf-8")),
        ],
    }

    async def receive():  # pragma: no cover - unused but required by interface
        return {"type": "http.request"}

    return Request(scope, receive)


def test_verify_slack_request_accepts_valid_signature():
    body = b"payload=%7B%7D"
    timestamp = str(int(time.time()))
    signature = compute_signature("test-secret", timestamp, body.decode())

    verify_slack_request(_build_request(timestamp, signature), body, "test-secret")


def test_verify_slack_request_rejects_mismatched_signature():
    timestamp = str(int(time.time()))
    request = _build_request(timestamp, "v0=" + "0" * 64)

    with pytest.raises(HTTPException) as exc:
        verify_slack_request(request, b"{}", "test-secret")

    assert exc.value.status_code == 401


def test_verify_slack_request_rejects_expired_timestamp(monkeypatch):
    body = b"{}"
    timestamp = "100"
    signature = compute_signature("test-secret", timestamp, body.decode())
    monkeypatch.setattr(time, "time", lambda: 1_000_000)

    with pytest.raises(HTTPException) as exc:
        verify_slack_request(_build_request(timestamp, signature), body, "test-secret")

    assert exc.value.detail == "Slack request timestamp expired"


def test_verify_slack_request_requires_secret():
    with pytest.raises(HTTPException) as exc:
        verify_slack_request(_build_request("1", "v0=x"), b"{}", None)

    assert exc.value.status_code == 500


def test_verify_slack_request_requires_headers():
    scope = {"type": "http", "method": "POST", "path": "/slack/events", "headers": []}

    async def receive():  # pragma: no cover - unused but required by interface
        return {"type": "http.request"}

    with pytest.raises(HTTPException) as exc:
        verify_slack_request(Request(scope, receive), b"{}", "test-secret")

    assert exc.value.status_code == 401


def test_parse_slack_body_reads_interaction_form():
    payload = {"type": "shortcut", "callback_id": "new-lesson-request"}
    body = urlencode({"payload": json.dumps(payload)}).encode()

    assert parse_slack_body(body, "application/x-www-form-urlencoded") == payload


def test_parse_slack_body_reads_event_json():
    body = json.dumps({"type": "event_callback", "event": {"type": "message"}}).encode()

    assert parse_slack_body(body, "application/json")["type"] == "event_callback"


@pytest.mark.parametrize(
    "body,content_type",
    [
        (b"not json", "application/json"),
        (b"token=abc", "application/x-www-form-urlencoded"),
        (b"[1, 2]", "application/json"),
    ],
)
def test_parse_slack_body_rejects_malformed_bodies(body, content_type):
    with pytest.raises(HTTPException) as exc:
        parse_slack_body(body, content_type)

    assert exc.value.status_code == 400
