"""Slack request verification and body decoding for the events endpoint."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional
from urllib.parse import parse_qs

from fastapi import HTTPException, Request

MAX_REQUEST_AGE_SECONDS = 60 * 5
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def compute_signature(signing_secret: str, timestamp: str, body: str) -> str:
    base_string = f"v0:{timestamp}:{body}"
    return "v0=" + hmac.new(
        signing_secret.encode("utf-8"),
        base_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_slack_request(request: Request, body: bytes, signing_secret: Optional[str]) -> None:
    """Validate Slack signature headers for an incoming request."""
    if not signing_secret:
        raise HTTPException(status_code=500, detail="Slack signing secret not configured")

    timestamp = request.headers.get("X-Slack-Request-Timestamp")
    signature = request.headers.get("X-Slack-Signature")
    if not timestamp or not signature:
        raise HTTPException(status_code=401, detail="Missing Slack signature headers")

    try:
        timestamp_int = int(timestamp)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid Slack timestamp") from exc

    if abs(int(time.time()) - timestamp_int) > MAX_REQUEST_AGE_SECONDS:
        raise HTTPException(status_code=401, detail="Slack request timestamp expired")

    try:
        decoded_body = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid Slack payload encoding") from exc

    if not hmac.compare_digest(compute_signature(signing_secret, timestamp, decoded_body), signature):
        raise HTTPException(status_code=401, detail="Slack signature mismatch")


def parse_slack_body(body: bytes, content_type: Optional[str]) -> Dict[str, Any]:
    """Decode an Events API JSON body or an interactivity ``payload=`` form body."""
    try:
        decoded = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid Slack payload encoding") from exc

    if content_type and content_type.startswith(FORM_CONTENT_TYPE):
        form = parse_qs(decoded, keep_blank_values=True)
        raw = (form.get("payload") or [None])[0]
        if raw is None:
            raise HTTPException(status_code=400, detail="Missing interaction payload")
    else:
        raw = decoded

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    return payload
