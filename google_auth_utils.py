import base64
import binascii
import json
import logging
import os
from threading import Lock
from typing import Any, Dict, Optional, Sequence, Tuple

from google.auth.exceptions import DefaultCredentialsError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from googleapiclient.discovery import build


logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.metadata",
]


def _decode_credential_key(encoded: str) -> Optional[Dict[str, Any]]:
    try:
        payload = base64.b64decode(encoded).decode("utf-8")
        return json.loads(payload)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("CLASSROOM_GOOGLE_CREDENTIAL_KEY is not base64 encoded JSON")
        return None


def load_service_account_credentials(
    scopes: Sequence[str],
) -> Optional[Tuple[service_account.Credentials, Optional[str]]]:
    """Load service account credentials, returning (creds, client_email)."""

    encoded_key = os.getenv("CLASSROOM_GOOGLE_CREDENTIAL_KEY")
    creds_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    sa_inline = os.getenv("GOOGLE_SA_JSON_CONTENT")

    if encoded_key:
        info = _decode_credential_key(encoded_key)
        if info:
            creds = service_account.Credentials.from_service_account_info(info, scopes=scopes)
            return creds, info.get("client_email")

    if creds_path:
        if os.path.exists(creds_path):
            creds = service_account.Credentials.from_service_account_file(
                creds_path, scopes=scopes
            )
            return creds, getattr(creds, "service_account_email", None)
        logger.warning("GOOGLE_APPLICATION_CREDENTIALS path %s does not exist", creds_path)

    if sa_inline:
        try:
            info = json.loads(sa_inline)
            creds = service_account.Credentials.from_service_account_info(info, scopes=scopes)
            return creds, info.get("client_email")
        except json.JSONDecodeError:
            logger.warning("GOOGLE_SA_JSON_CONTENT is not valid JSON")

    logger.warning(
        "Service account credentials not configured; CLASSROOM_GOOGLE_CREDENTIAL_KEY, "
        "GOOGLE_APPLICATION_CREDENTIALS, and GOOGLE_SA_JSON_CONTENT all empty.",
    )
    return None


class GoogleClientProvider:
    """Process-wide holder for the service account and the API clients built on it.

    Credentials are loaded on first use. Handing out a client renews an expired
    access token first; the discovery clients keep using the same credentials object.
    """

    def __init__(self, scopes: Sequence[str] = SCOPES, loader=load_service_account_credentials):
        self._scopes = list(scopes)
        self._loader = loader
        self._lock = Lock()
        self._credentials: Optional[service_account.Credentials] = None
        self._services: Dict[str, Any] = {}

    @property
    def credentials(self) -> service_account.Credentials:
        with self._lock:
            if self._credentials is None:
                creds_tuple = self._loader(self._scopes)
                if not creds_tuple:
                    logger.error("google_credentials_missing")
                    raise DefaultCredentialsError("Service account credentials not configured for Google APIs")
                self._credentials, client_email = creds_tuple
                logger.info("google_credentials_loaded", extra={"client_email": client_email})
            return self._credentials

    def refresh(self) -> None:
        creds = self.credentials
        with self._lock:
            creds.refresh(GoogleAuthRequest())
        logger.info("google_credentials_refreshed", extra={"expiry": str(creds.expiry)})

    def ensure_valid(self) -> None:
        if not self.credentials.valid:
            self.refresh()

    def _service(self, name: str, version: str):
        creds = self.credentials
        key = f"{name}:{version}"
        with self._lock:
            if key not in self._services:
                self._services[key] = build(name, version, credentials=creds, cache_discovery=False)
            return self._services[key]

    def sheets(self):
        self.ensure_valid()
        return self._service("sheets", "v4")

    def drive(self):
        self.ensure_valid()
        return self._service("drive", "v3")
