import logging

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from urllib.parse import quote, urlencode

from base.core.unique_id import base36_from_int, unix_millis
from base.models.context import ServiceContext
from base.strings.atlassian import IssueKey, ProjectKey

from ticketing.connectors.credentials import (
    JiraBasicConfig,
    JiraConnection,
    JiraOAuthConfig,
    resolve_connection,
)
from ticketing.connectors.executor import JiraExecutor
from ticketing.domain.adf import adf_paragraph, extract_adf_content
from ticketing.domain.attachments import fetch_attachment
from ticketing.domain.jql import build_user_tickets_jql
from ticketing.models.exceptions import JiraFailure
from ticketing.models.jira import (
    CreateRequestInput,
    CreateRequestResult,
    JiraAttachment,
    JiraComment,
    JiraIssue,
    JiraStatus,
    JiraTransition,
    JiraUser,
    JiraUserRef,
    RequestType,
    ServiceRequest,
    TicketWithComments,
)
from ticketing.models.outcome import JiraOutcome
from ticketing.services.transport import SvcTransport, TransportFile

logger = logging.getLogger(__name__)

DESCRIPTION_TRAILER_MARKER = "\n\n----\n*Submitted via Support Portal*\n"
"""
Separates the text written by the user from the metadata appended below it,
so that it can be stripped again when the ticket is displayed.
"""

DEFAULT_ISSUE_TYPE = "Task"
DEFAULT_LABELS = ["support-portal"]
SEARCH_MAX_RESULTS = 50
SEARCH_FIELDS = [
    "summary",
    "status",
    "created",
    "updated",
    "description",
    "priority",
    "reporter",
    "labels",
]


def build_request_description(request: CreateRequestInput) -> str:
    """
    Append the trailer with the origin of the request to its description.
    """
    description = request.description + DESCRIPTION_TRAILER_MARKER
    if request.origin_server_id:
        description += f"Discord Server ID: {request.origin_server_id}\n"
    if request.origin_username:
        description += f"Discord Username: {request.origin_username}\n"
    if request.origin_user_id:
        description += f"Discord User ID: {request.origin_user_id}\n"
    return description


##
## Client
##


@dataclass(kw_only=True)
class JiraServiceDeskClient:
    """
    Creates, reads, comments on and transitions the tickets of one Jira site,
    either with operator credentials or with the OAuth tokens of a tenant.

    Every operation returns a `JiraOutcome`, so that callers can tell "nothing
    found" apart from "service unreachable", and fall back to a safe default
    with `value_or` where one exists.
    """

    connection: JiraConnection
    transport: SvcTransport
    executor: JiraExecutor

    @staticmethod
    def initialize(
        config: JiraBasicConfig | JiraOAuthConfig,
        transport: SvcTransport,
    ) -> "JiraServiceDeskClient":
        connection = resolve_connection(config)
        return JiraServiceDeskClient(
            connection=connection,
            transport=transport,
            executor=JiraExecutor(connection=connection, transport=transport),
        )

    @staticmethod
    def from_context(
        context: ServiceContext,
        config: JiraBasicConfig | JiraOAuthConfig,
    ) -> "JiraServiceDeskClient":
        return JiraServiceDeskClient.initialize(config, context.service(SvcTransport))

    def is_available(self) -> bool:
        return self.connection.is_available()

    def _api(self, path: str, query: dict[str, Any] | None = None) -> str:
        query_suffix = f"?{urlencode(query, quote_via=quote)}" if query else ""
        return f"{self.connection.api_url}/{path}{query_suffix}"

    def _issue_api(self, issue_key: str, suffix: str = "") -> str:
        return self._api(f"issue/{quote(issue_key, safe='')}{suffix}")

    ##
    ## Creation
    ##

    async def create_request(
        self,
        request: CreateRequestInput,
        now: datetime | None = None,
    ) -> JiraOutcome[CreateRequestResult]:
        """
        Create a ticket through the service desk when one is configured, with
        a silent fallback to the generic issue creation.

        When the client is not configured, returns a mock ticket without any
        network call, so demo environments work without credentials.

        NOTE: `request.priority` is accepted but not sent, since priority names
        differ between Jira sites.
        """
        if not self.is_available():
            timestamp_ms = unix_millis(now)
            return JiraOutcome.ok(
                CreateRequestResult(
                    issue_key=f"MOCK-{base36_from_int(timestamp_ms).upper()}",
                    issue_id=f"mock-{timestamp_ms}",
                    created_via="mock",
                )
            )

        description = build_request_description(request)
        if self.connection.service_desk_id:
            outcome = await self._create_service_desk_request(request, description)
            if outcome.is_ok():
                return outcome
            logger.info(
                "Service desk request failed (%s), creating a Jira issue instead",
                outcome.failure.kind if outcome.failure else "?",
            )

        return await self._create_issue(request, description)

    async def _create_service_desk_request(
        self,
        request: CreateRequestInput,
        description: str,
    ) -> JiraOutcome[CreateRequestResult]:
        payload: dict[str, Any] = {
            "serviceDeskId": self.connection.service_desk_id,
            "requestFieldValues": {
                "summary": request.summary,
                "description": description,
            },
        }
        if self.connection.request_type_id:
            payload["requestTypeId"] = self.connection.request_type_id
        if request.requester_email:
            payload["raiseOnBehalfOf"] = request.requester_email

        outcome = await self.executor.execute(
            "POST",
            f"{self.connection.service_desk_api_url}/request",
            json=payload,
        )
        return _parsed(outcome, _parse_service_request_result, "service request")

    async def _create_issue(
        self,
        request: CreateRequestInput,
        description: str,
    ) -> JiraOutcome[CreateRequestResult]:
        payload = {
            "fields": {
                "project": {"key": str(self.connection.project_key)},
                "summary": request.summary,
                "description": adf_paragraph(description),
                "issuetype": {"name": DEFAULT_ISSUE_TYPE},
                "labels": (
                    request.labels if request.labels is not None else DEFAULT_LABELS
                ),
            },
        }
        outcome = await self.executor.execute("POST", self._api("issue"), json=payload)
        return _parsed(outcome, _parse_issue_result, "issue")

    ##
    ## Issues
    ##

    async def get_issue(self, issue_key: str) -> JiraOutcome[JiraIssue]:
        outcome = await self.executor.execute("GET", self._issue_api(issue_key))
        return _parsed(_not_found_on_404(outcome, issue_key), _parse_issue, "issue")

    async def search_issues(
        self,
        jql: str,
        max_results: int = SEARCH_MAX_RESULTS,
    ) -> JiraOutcome[list[JiraIssue]]:
        outcome = await self.executor.execute(
            "POST",
            self._api("search/jql"),
            json={
                "jql": jql,
                "maxResults": max_results,
                "fields": SEARCH_FIELDS,
            },
        )
        return _parsed(
            outcome,
            lambda data: _parse_list(_get_path(data, ["issues"], []), _parse_issue),
            "search result",
        )

    async def get_tickets_by_user(
        self,
        user_id: str,
        username: str | None = None,
    ) -> JiraOutcome[list[JiraIssue]]:
        """
        Find the tickets whose description trailer mentions the user.
        """
        if not self.is_available():
            return JiraOutcome.fail(JiraFailure.not_configured())

        jql = build_user_tickets_jql(self.connection.project_key, user_id, username)
        return await self.search_issues(jql, SEARCH_MAX_RESULTS)

    async def get_ticket_with_comments(
        self,
        issue_key: str,
    ) -> JiraOutcome[TicketWithComments]:
        """
        Fetch an issue and its comments, flattened into plain text.  When only
        the comments cannot be fetched, the issue is returned without them.
        """
        issue_outcome = await self.get_issue(issue_key)
        if issue_outcome.failure or issue_outcome.value is None:
            return JiraOutcome.fail(
                issue_outcome.failure or JiraFailure.not_found(issue_key)
            )

        comments_outcome = await self.executor.execute(
            "GET",
            self._issue_api(issue_key, "/comment"),
        )
        if comments_outcome.failure:
            logger.warning(
                "Cannot fetch the comments of %s: %s",
                issue_key,
                comments_outcome.failure.message,
            )

        comments = _parse_list(
            _get_path(comments_outcome.value, ["comments"], []),
            _parse_comment,
        )
        return JiraOutcome.ok(
            TicketWithComments(issue=issue_outcome.value, comments=comments)
        )

    async def add_comment(self, issue_key: str, text: str) -> JiraOutcome[str]:
        """
        Add a comment and return its ID.
        """
        outcome = await self.executor.execute(
            "POST",
            self._issue_api(issue_key, "/comment"),
            json={"body": adf_paragraph(text)},
        )
        return _parsed(
            outcome,
            lambda data: str(comment_id) if (comment_id := data.get("id")) else None,
            "comment",
        )

    async def add_attachment(
        self,
        issue_key: str,
        content: bytes,
        filename: str,
        mime_type: str,
    ) -> JiraOutcome[list[JiraAttachment]]:
        outcome = await self.executor.execute(
            "POST",
            self._issue_api(issue_key, "/attachments"),
            files=[
                TransportFile(
                    field_name="file",
                    filename=filename,
                    content=content,
                    mime_type=mime_type,
                )
            ],
            expect_body=False,
        )
        return _parsed(
            outcome,
            lambda data: _parse_list(data or [], _parse_attachment),
            "attachment",
        )

    async def download_attachment(self, url: str) -> JiraOutcome[bytes]:
        return await fetch_attachment(self.connection, self.transport, url)

    ##
    ## Workflow
    ##

    async def assign_issue(self, issue_key: str, account_id: str) -> JiraOutcome[None]:
        outcome = await self.executor.execute(
            "PUT",
            self._issue_api(issue_key, "/assignee"),
            json={"accountId": account_id},
            expect_body=False,
        )
        if outcome.failure:
            return JiraOutcome.fail(outcome.failure)
        return JiraOutcome.ok(None)

    async def transition_issue(
        self,
        issue_key: str,
        target_status: str,
    ) -> JiraOutcome[JiraTransition]:
        """
        Move the issue to the target status, through the legal transition that
        matches it best: on the target status name, then on the name of the
        transition, then on the target status category (ignoring case).

        Failures are logged and returned, never raised: callers must not
        assume that the transition occurred.
        """
        outcome = await self.executor.execute(
            "GET",
            self._issue_api(issue_key, "/transitions"),
        )
        transitions_outcome = _parsed(
            outcome,
            lambda data: _parse_list(
                _get_path(data, ["transitions"], []), _parse_transition
            ),
            "transition list",
        )
        if transitions_outcome.failure or transitions_outcome.value is None:
            logger.warning(
                "Cannot list the transitions of %s to '%s'", issue_key, target_status
            )
            return JiraOutcome.fail(
                transitions_outcome.failure or JiraFailure.not_found(issue_key)
            )

        transitions = transitions_outcome.value
        if not (transition := _best_transition(transitions, target_status)):
            logger.warning(
                "No transition found for %s to '%s'. Available: %s",
                issue_key,
                target_status,
                ", ".join(t.describe() for t in transitions),
            )
            return JiraOutcome.fail(JiraFailure.no_matching_transition(target_status))

        outcome = await self.executor.execute(
            "POST",
            self._issue_api(issue_key, "/transitions"),
            json={"transition": {"id": transition.id}},
            expect_body=False,
        )
        if outcome.failure:
            logger.warning(
                "Transition of %s to '%s' failed: %s",
                issue_key,
                target_status,
                outcome.failure.message,
            )
            return JiraOutcome.fail(outcome.failure)
        return JiraOutcome.ok(transition)

    ##
    ## Users
    ##

    async def get_user(self, account_id: str) -> JiraOutcome[JiraUser]:
        outcome = await self.executor.execute(
            "GET",
            self._api("user", {"accountId": account_id}),
        )
        return _parsed(
            _not_found_on_404(outcome, f"user {account_id}"),
            _parse_user,
            "user",
        )

    async def is_user_assignable_in_project(
        self,
        account_id: str,
        project_key: ProjectKey | str,
    ) -> JiraOutcome[bool]:
        """
        Search the assignable users of the project by the display name of the
        account, then require its exact account ID among the results: users
        who merely share the name are not assignable.
        """
        user_outcome = await self.get_user(account_id)
        if user_outcome.failure or user_outcome.value is None:
            return JiraOutcome.fail(
                user_outcome.failure or JiraFailure.not_found(f"user {account_id}")
            )

        outcome = await self.executor.execute(
            "GET",
            self._api(
                "user/assignable/search",
                {
                    "project": str(project_key),
                    "query": user_outcome.value.display_name,
                    "maxResults": SEARCH_MAX_RESULTS,
                },
            ),
        )
        return _parsed(
            outcome,
            lambda data: (
                any(
                    isinstance(user, dict) and user.get("accountId") == account_id
                    for user in data
                )
                if isinstance(data, list)
                else None
            ),
            "assignable user list",
        )

    async def get_request_types(self) -> JiraOutcome[list[RequestType]]:
        """
        List the request types of the service desk, or none when the client
        has no service desk.
        """
        if not self.is_available():
            return JiraOutcome.fail(JiraFailure.not_configured())
        if not self.connection.service_desk_id:
            return JiraOutcome.ok([])

        service_desk_id = quote(self.connection.service_desk_id, safe="")
        outcome = await self.executor.execute(
            "GET",
            f"{self.connection.service_desk_api_url}"
            f"/servicedesk/{service_desk_id}/requesttype",
        )
        return _parsed(
            outcome,
            lambda data: _parse_list(
                _get_path(data, ["values"], []), _parse_request_type
            ),
            "request type list",
        )


##
## Transitions
##


def _best_transition(
    transitions: list[JiraTransition],
    target_status: str,
) -> JiraTransition | None:
    candidates = [
        (priority, index, transition)
        for index, transition in enumerate(transitions)
        if (priority := transition.matches(target_status)) is not None
    ]
    if not candidates:
        return None
    _, _, transition = min(candidates, key=lambda c: (c[0], c[1]))
    return transition


##
## Parsing
##


def _parsed[T](
    outcome: JiraOutcome[Any],
    parse: Callable[[Any], T | None],
    what: str,
) -> JiraOutcome[T]:
    """
    Parse the value of a successful outcome, where a body that does not have
    the expected shape counts as a transport failure.
    """
    if outcome.failure:
        return JiraOutcome.fail(outcome.failure)
    try:
        value = parse(outcome.value)
    except (AttributeError, TypeError, ValueError):
        value = None
    if value is None:
        logger.warning("Jira returned an invalid %s", what)
        return JiraOutcome.fail(JiraFailure.transport_failure())
    return JiraOutcome.ok(value)


def _not_found_on_404(outcome: JiraOutcome[Any], what: str) -> JiraOutcome[Any]:
    if outcome.failure and outcome.failure.status == 404:  # noqa: PLR2004
        return JiraOutcome.fail(JiraFailure.not_found(what, status=404))
    return outcome


def _get_path[T](data: Any, path: list[str], default: T) -> T:
    cursor: Any = data
    for p in path:
        if not isinstance(cursor, dict) or p not in cursor:
            return default
        cursor = cursor[p]
    return cursor or default


def _parse_list[T](items: Any, parse: Callable[[Any], T | None]) -> list[T]:
    if not isinstance(items, list):
        return []
    return [value for item in items if (value := parse(item)) is not None]


def _parse_issue(data: Any) -> JiraIssue | None:
    if not isinstance(data, dict) or not (
        issue_key := IssueKey.try_decode(data.get("key"))
    ):
        return None

    fields: dict[str, Any] = _get_path(data, ["fields"], {})
    return JiraIssue(
        id=str(data.get("id") or ""),
        key=issue_key,
        summary=_get_path(fields, ["summary"], ""),
        description=extract_adf_content(fields.get("description")).text or None,
        status=JiraStatus(
            name=_get_path(fields, ["status", "name"], ""),
            category=_get_path(fields, ["status", "statusCategory", "key"], None),
        ),
        priority=_get_path(fields, ["priority", "name"], None),
        created=_get_path(fields, ["created"], None),
        updated=_get_path(fields, ["updated"], None),
        reporter=_parse_user_ref(fields.get("reporter")),
        assignee=_parse_user_ref(fields.get("assignee")),
        labels=[
            label
            for label in _get_path(fields, ["labels"], [])
            if isinstance(label, str)
        ],
        attachments=_parse_list(fields.get("attachment"), _parse_attachment),
    )


def _parse_user_ref(data: Any) -> JiraUserRef | None:
    if not isinstance(data, dict):
        return None
    return JiraUserRef(
        display_name=_get_path(data, ["displayName"], "Unknown"),
        account_id=_get_path(data, ["accountId"], None),
        email_address=_get_path(data, ["emailAddress"], None),
    )


def _parse_attachment(data: Any) -> JiraAttachment | None:
    if not isinstance(data, dict) or not data.get("id") or not data.get("content"):
        return None
    return JiraAttachment(
        id=str(data["id"]),
        filename=_get_path(data, ["filename"], ""),
        mime_type=_get_path(data, ["mimeType"], "application/octet-stream"),
        size=_get_path(data, ["size"], 0),
        content_url=data["content"],
        created=_get_path(data, ["created"], None),
    )


def _parse_comment(data: Any) -> JiraComment | None:
    if not isinstance(data, dict) or not data.get("id"):
        return None
    extracted = extract_adf_content(data.get("body"))
    return JiraComment(
        id=str(data["id"]),
        author=_get_path(data, ["author", "displayName"], "Unknown"),
        text=extracted.text,
        created=_get_path(data, ["created"], None),
        media_attachment_ids=extracted.media_ids,
    )


def _parse_transition(data: Any) -> JiraTransition | None:
    if not isinstance(data, dict) or not data.get("id"):
        return None
    return JiraTransition(
        id=str(data["id"]),
        name=_get_path(data, ["name"], ""),
        to_status=_get_path(data, ["to", "name"], ""),
        to_category=_get_path(data, ["to", "statusCategory", "name"], None),
    )


def _parse_user(data: Any) -> JiraUser | None:
    if not isinstance(data, dict) or not data.get("accountId"):
        return None
    return JiraUser(
        account_id=data["accountId"],
        display_name=_get_path(data, ["displayName"], ""),
        active=bool(data.get("active", True)),
    )


def _parse_request_type(data: Any) -> RequestType | None:
    if not isinstance(data, dict) or not data.get("id"):
        return None
    return RequestType(
        id=str(data["id"]),
        name=_get_path(data, ["name"], ""),
        description=_get_path(data, ["description"], ""),
    )


def _parse_service_request_result(data: Any) -> CreateRequestResult | None:
    if not isinstance(data, dict) or not (
        issue_key := IssueKey.try_decode(data.get("issueKey"))
    ):
        return None

    service_request = ServiceRequest(
        issue_id=str(data.get("issueId") or ""),
        issue_key=issue_key,
        service_desk_id=_get_path(data, ["serviceDeskId"], None),
        request_type_id=_get_path(data, ["requestTypeId"], None),
        created_date=_get_path(data, ["createdDate", "iso8601"], None),
        reporter=_get_path(data, ["reporter", "displayName"], None),
        current_status=_get_path(data, ["currentStatus", "status"], None),
    )
    return CreateRequestResult(
        issue_key=service_request.issue_key,
        issue_id=service_request.issue_id,
        created_via="service_desk",
        service_request=service_request,
    )


def _parse_issue_result(data: Any) -> CreateRequestResult | None:
    if not isinstance(data, dict) or not data.get("key"):
        return None
    return CreateRequestResult(
        issue_key=str(data["key"]),
        issue_id=str(data.get("id") or ""),
        created_via="issue",
    )
