# drive_service.py

import logging
from typing import Any, Callable, Literal, Optional, TypeVar

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from service_result import ServiceResult

T = TypeVar("T")
PermissionRole = Literal["writer", "owner"]

# Configure logger
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class DriveManager:
    def __init__(self, service_factory: Callable[[], Any], correlation_id: Optional[str] = None):
        """
        Google Drive helpers used when a lesson workbook is provisioned.

        Args:
            service_factory: returns a Drive v3 discovery client
            correlation_id: Optional correlation ID for tracing requests
        """
        self._service_factory = service_factory
        self.correlation_id = correlation_id or "no-correlation-id"

    def _call(self, operation: str, func: Callable[[], T], **context: Any) -> ServiceResult[T]:
        try:
            return ServiceResult.success(func())
        except (HttpError, GoogleAuthError, OSError) as exc:
            logger.error(
                "drive_api_error",
                extra={
                    "correlation_id": self.correlation_id,
                    "operation": operation,
                    "error": str(exc),
                    **context,
                },
            )
            return ServiceResult.failure(exc)

    def _permissions(self):
        return self._service_factory().permissions()

    def add_file_parent(self, file_id: str, folder_id: str) -> ServiceResult[Any]:
        """Place a file inside a Drive folder (keeps its existing parents)."""
        return self._call(
            "add_file_parent",
            lambda: self._service_factory()
            .files()
            .update(fileId=file_id, addParents=folder_id, supportsAllDrives=True)
            .execute(),
            file_id=file_id,
            folder_id=folder_id,
        )

    def create_permission(self, file_id: str, email_address: str, role: PermissionRole) -> ServiceResult[str]:
        """
        Share a file with a user.

        Drive only transfers ownership of an existing permission, so an owner
        is first added as writer and then promoted.
        """
        created = self._call(
            "create_permission",
            lambda: self._permissions().create(
                fileId=file_id,
                body={"role": "writer", "type": "user", "emailAddress": email_address},
            ).execute(),
            file_id=file_id,
            role=role,
        )
        if not created.ok:
            return created  # type: ignore[return-value]

        permission_id = (created.value or {}).get("id", "")
        if role == "owner":
            promoted = self._call(
                "transfer_ownership",
                lambda: self._permissions().update(
                    fileId=file_id,
                    permissionId=permission_id,
                    transferOwnership=True,
                    body={"role": "owner"},
                ).execute(),
                file_id=file_id,
            )
            if not promoted.ok:
                return promoted  # type: ignore[return-value]

        logger.info(
            "drive_permission_created",
            extra={"correlation_id": self.correlation_id, "file_id": file_id, "role": role},
        )
        return ServiceResult.success(permission_id)
