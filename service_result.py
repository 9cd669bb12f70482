from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar


T = TypeVar("T")


class ResultStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ServiceResultError(RuntimeError):
    def __init__(self, status: ResultStatus, message: Optional[str]):
        super().__init__(message or status.value)
        self.status = status


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of a remote call: a value, an explicit not-found, or an error message."""

    status: ResultStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(status=ResultStatus.OK, value=value)

    @classmethod
    def not_found(cls, detail: Optional[str] = None) -> "ServiceResult[T]":
        return cls(status=ResultStatus.NOT_FOUND, error=detail)

    @classmethod
    def failure(cls, error: object) -> "ServiceResult[T]":
        return cls(status=ResultStatus.ERROR, error=str(error))

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.OK

    @property
    def is_not_found(self) -> bool:
        return self.status == ResultStatus.NOT_FOUND

    def unwrap(self) -> T:
        if not self.ok:
            raise ServiceResultError(self.status, self.error)
        return self.value  # type: ignore[return-value]

    def value_or(self, default: T) -> T:
        return self.value if self.ok else default  # type: ignore[return-value]
