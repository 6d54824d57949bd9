import logging
import re

from dataclasses import dataclass
from typing import Any

from ticketing.config import TicketingConfig
from ticketing.connectors.credentials import JiraConnection
from ticketing.models.exceptions import JiraFailure, TransportError
from ticketing.models.outcome import JiraOutcome
from ticketing.services.transport import SvcTransport, TransportFile, TransportResponse

logger = logging.getLogger(__name__)

REGEX_REST_PATH = r"/rest/.*"


def redact_url(url: str) -> str:
    """
    Truncate a Jira URL at "/rest/", so that issue keys, account IDs and
    queries are not written to the logs.
    """
    return re.sub(REGEX_REST_PATH, "/rest/...", url)


@dataclass(kw_only=True)
class JiraExecutor:
    """
    The single entry point of every call to Jira.  Normalizes the response
    into a `JiraOutcome`, never exposing the body of a rejected request.
    """

    connection: JiraConnection
    transport: SvcTransport

    def _headers(
        self,
        *,
        accept: str,
        json_body: bool,
        extra: dict[str, str] | None,
    ) -> dict[str, str]:
        headers = {"Accept": accept, "X-Atlassian-Token": "no-check"}
        if json_body:
            headers["Content-Type"] = "application/json"
        if self.connection.authorization:
            headers["Authorization"] = self.connection.authorization
        return {**headers, **(extra or {})}

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        files: list[TransportFile] | None = None,
    ) -> TransportResponse | JiraFailure:
        if not self.connection.is_available():
            return JiraFailure.not_configured()

        try:
            response = await self.transport.request(
                method,
                url,
                headers=headers,
                json=json,
                files=files,
            )
        except TransportError:
            logger.warning("Jira %s %s unavailable", method, redact_url(url))
            return JiraFailure.transport_failure()

        if not response.ok():
            # NOTE: The body may contain sensitive remote-side details.
            logger.error(
                "Jira %s %s failed (%d)",
                method,
                redact_url(url),
                response.status,
            )
            return JiraFailure.remote_rejected(response.status)

        return response

    async def execute(
        self,
        method: str,
        url: str,
        *,
        json: Any | None = None,
        files: list[TransportFile] | None = None,
        headers: dict[str, str] | None = None,
        expect_body: bool = True,
    ) -> JiraOutcome[Any]:
        """
        Send a JSON request (or a multipart one, when `files` are given) and
        parse the JSON response.  When `expect_body` is False, an empty body
        (e.g., "204 No Content") is a success with no value.
        """
        response = await self._send(
            method,
            url,
            headers=self._headers(
                accept="application/json",
                json_body=not files,
                extra=headers,
            ),
            json=json,
            files=files,
        )
        if isinstance(response, JiraFailure):
            return JiraOutcome.fail(response)

        if not expect_body and not response.body.strip():
            return JiraOutcome.ok(None)

        try:
            return JiraOutcome.ok(response.parse_json())
        except ValueError:
            if TicketingConfig.verbose:
                logger.exception("Jira %s %s: invalid JSON", method, redact_url(url))
            else:
                logger.warning("Jira %s %s: invalid JSON", method, redact_url(url))
            return JiraOutcome.fail(JiraFailure.transport_failure())

    async def execute_bytes(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> JiraOutcome[bytes]:
        """
        Download a binary body with an authenticated GET.
        """
        response = await self._send(
            "GET",
            url,
            headers=self._headers(accept="*/*", json_body=False, extra=headers),
        )
        if isinstance(response, JiraFailure):
            return JiraOutcome.fail(response)
        return JiraOutcome.ok(response.body)
