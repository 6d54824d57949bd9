from pydantic import BaseModel
from typing import Literal

from base.core.exceptions import ApiError, ApiErrorKind


class TicketingError(ApiError):
    """Base class for all custom exceptions in the project."""


##
## Failures
##


JiraErrorKind = Literal[
    "not_configured",
    "remote_rejected",
    "transport_failure",
    "untrusted_host",
    "no_matching_transition",
    "not_found",
]
"""
- "not_configured": no credentials or tokens; callers fall back to a mock or
  an empty result where one is defined.
- "remote_rejected": non-2xx answer; the body is withheld, the status kept.
- "transport_failure": DNS, TLS, timeout or unparsable body.
- "untrusted_host": an attachment URL failed the host allow-list.
- "no_matching_transition": no legal transition leads to the target status.
- "not_found": the service answered, but without the requested entity.
"""


class JiraFailure(BaseModel, frozen=True):
    kind: JiraErrorKind
    message: str
    status: int | None = None
    """
    The HTTP status returned by Jira, for diagnostics only.
    """

    @staticmethod
    def not_configured() -> "JiraFailure":
        return JiraFailure(kind="not_configured", message="Atlassian not configured")

    @staticmethod
    def remote_rejected(status: int) -> "JiraFailure":
        return JiraFailure(
            kind="remote_rejected",
            message=f"External service error ({status})",
            status=status,
        )

    @staticmethod
    def transport_failure() -> "JiraFailure":
        return JiraFailure(
            kind="transport_failure",
            message="External service unavailable",
        )

    @staticmethod
    def untrusted_host(hostname: str) -> "JiraFailure":
        return JiraFailure(
            kind="untrusted_host",
            message=f"Blocked attachment download from untrusted host: {hostname}",
        )

    @staticmethod
    def no_matching_transition(target: str) -> "JiraFailure":
        return JiraFailure(
            kind="no_matching_transition",
            message=f"No transition found to '{target}'",
        )

    @staticmethod
    def not_found(what: str, status: int | None = None) -> "JiraFailure":
        return JiraFailure(kind="not_found", message=f"Not Found: {what}", status=status)


FAILURE_CODES: dict[JiraErrorKind, tuple[int, ApiErrorKind]] = {
    "not_configured": (503, "normal"),
    "remote_rejected": (502, "normal"),
    "transport_failure": (503, "retryable"),
    "untrusted_host": (400, "normal"),
    "no_matching_transition": (409, "normal"),
    "not_found": (404, "normal"),
}


class JiraError(TicketingError):
    """
    Raised by `JiraOutcome.unwrap` for callers that prefer exceptions over
    inspecting the outcome.  The remote response body is never included.
    """

    include_stacktrace: bool = False
    failure: JiraFailure

    def __init__(self, failure: JiraFailure) -> None:
        code, error_kind = FAILURE_CODES[failure.kind]
        super().__init__(
            failure.message,
            code=code,
            error_kind=error_kind,
            extra_data={"kind": failure.kind, "status": failure.status},
        )
        self.failure = failure


##
## Errors
##


class OAuthError(TicketingError):
    """
    Raised when an OAuth flow cannot be completed: missing client credentials,
    or a token/discovery endpoint answering with an error.  Only the status is
    kept, since the body may echo the secrets that were submitted.
    """

    code: int = 502
    error_kind: ApiErrorKind = "normal"
    include_stacktrace: bool = False

    @staticmethod
    def not_configured() -> "OAuthError":
        return OAuthError(
            "ATLASSIAN_OAUTH_CLIENT_ID and ATLASSIAN_OAUTH_CLIENT_SECRET must be set",
            code=503,
        )

    @staticmethod
    def rejected(action: str, status: int) -> "OAuthError":
        return OAuthError(
            f"{action} failed ({status})",
            extra_data={"status": status},
        )

    @staticmethod
    def unavailable(action: str) -> "OAuthError":
        return OAuthError(f"{action} failed: service unavailable", error_kind="retryable")


class VaultError(TicketingError):
    """Raised when a stored secret cannot be encrypted or decrypted."""

    code: int = 500
    error_kind: ApiErrorKind = "runtime"
    include_stacktrace: bool = False


class TransportError(TicketingError):
    """
    Raised by `SvcTransport` when no HTTP response could be obtained (DNS,
    TLS, connection reset or timeout).
    """

    code: int = 503
    error_kind: ApiErrorKind = "retryable"
    include_stacktrace: bool = False

    @staticmethod
    def unavailable(method: str) -> "TransportError":
        return TransportError(f"Service Unavailable: {method} request failed")
