import traceback
import uuid

from pydantic import BaseModel, Field
from typing import Any, Literal, Self


ApiErrorKind = Literal["action", "normal", "retryable", "runtime"]
"""
Tells the caller how to present a failure to the end-user:

- "action": the user chose to stop (e.g., declined the OAuth consent).
- "normal": an expected answer, such as "404 Not Found".
- "retryable": a temporary outage, worth another attempt later.
- "runtime": a bug, reported with its GUID so it can be found in the logs.
"""


##
## Serialization
##


class ErrorData(BaseModel, frozen=True):
    error_guid: str
    error_kind: ApiErrorKind = "runtime"
    extra: dict[str, Any] = Field(default_factory=dict)
    stacktrace: str = ""


class ErrorInfo(BaseModel, frozen=True):
    """
    An `ApiError` as reported to the portal, e.g., in the body of a failed
    request.  `data.error_guid` is also written to the logs.
    """

    code: int
    message: str
    data: ErrorData


##
## Exception
##


class ApiError(Exception):
    """
    Base class of the errors that the portal knows how to display.  Subclasses
    set their own defaults for the class attributes.
    """

    code: int = 500
    error_kind: ApiErrorKind = "runtime"
    include_stacktrace: bool = True

    error_guid: str
    extra_data: dict[str, Any]

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        error_guid: str | None = None,
        error_kind: ApiErrorKind | None = None,
        extra_data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or type(self).code
        self.error_guid = error_guid or str(uuid.uuid4())
        self.error_kind = error_kind or type(self).error_kind
        self.extra_data = dict(extra_data) if extra_data else {}

    @classmethod
    def from_exception(cls, exc: Exception) -> Self:
        """
        Wrap any exception into this class.  An `ApiError` keeps its GUID and
        extra data, and instances of `cls` are returned unchanged.

        NOTE: Only valid for subclasses that keep the default constructor.
        """
        if isinstance(exc, cls):
            return exc
        if isinstance(exc, ApiError):
            return cls(
                str(exc),
                error_guid=exc.error_guid,
                extra_data=exc.extra_data,
            )
        return cls(f"Internal Server Error: {exc}")

    def as_info(self) -> ErrorInfo:
        return ErrorInfo(
            code=self.code,
            message=str(self),
            data=ErrorData(
                error_guid=self.error_guid,
                error_kind=self.error_kind,
                extra=dict(self.extra_data),
                stacktrace=self.format_stacktrace(),
            ),
        )

    def format_stacktrace(self) -> str:
        if not self.include_stacktrace:
            return ""
        return "\n".join(traceback.format_exception(self)).rstrip()
