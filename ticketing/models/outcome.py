from dataclasses import dataclass

from ticketing.models.exceptions import JiraError, JiraFailure


@dataclass(frozen=True, kw_only=True)
class JiraOutcome[T]:
    """
    The result of a call to Jira: either a value or a `JiraFailure`, so that
    callers can distinguish "nothing found" from "service unreachable".

    NOTE: A successful outcome may hold `None`, e.g., after a 204 No Content.
    """

    value: T | None = None
    failure: JiraFailure | None = None

    @staticmethod
    def ok[V](value: V) -> "JiraOutcome[V]":
        return JiraOutcome(value=value)

    @staticmethod
    def fail(failure: JiraFailure) -> "JiraOutcome":
        return JiraOutcome(failure=failure)

    def is_ok(self) -> bool:
        return self.failure is None

    def value_or[D](self, default: D) -> T | D:
        if self.failure is None and self.value is not None:
            return self.value
        return default

    def unwrap(self) -> T:
        if self.failure is not None:
            raise JiraError(self.failure)
        return self.value  # type: ignore[return-value]
