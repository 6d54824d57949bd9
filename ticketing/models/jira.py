from pydantic import BaseModel, Field
from typing import Literal

from base.strings.atlassian import IssueKey


TicketPriority = Literal["lowest", "low", "medium", "high", "highest"]


##
## Issues
##


class JiraStatus(BaseModel, frozen=True):
    name: str
    category: str | None = None
    """
    The key of the status category, e.g., "new", "indeterminate" or "done".
    """


class JiraUserRef(BaseModel, frozen=True):
    display_name: str
    account_id: str | None = None
    email_address: str | None = None


class JiraAttachment(BaseModel, frozen=True):
    id: str
    filename: str
    mime_type: str
    size: int = 0
    content_url: str
    """
    The download URL, which must go through `fetch_attachment`.
    """
    created: str | None = None


class JiraIssue(BaseModel, frozen=True):
    id: str
    key: IssueKey
    summary: str
    description: str | None = None
    """
    The plain text of the description, extracted from its rich-document body.
    """
    status: JiraStatus
    priority: str | None = None
    created: str | None = None
    updated: str | None = None
    reporter: JiraUserRef | None = None
    assignee: JiraUserRef | None = None
    labels: list[str] = Field(default_factory=list)
    attachments: list[JiraAttachment] = Field(default_factory=list)


class JiraComment(BaseModel, frozen=True):
    id: str
    author: str
    text: str
    created: str | None = None
    media_attachment_ids: list[str] = Field(default_factory=list)


class TicketWithComments(BaseModel, frozen=True):
    issue: JiraIssue
    comments: list[JiraComment]


##
## Creation
##


class CreateRequestInput(BaseModel, frozen=True):
    """
    Consumed once per `create_request` call, never persisted.
    """

    summary: str
    description: str
    requester_name: str
    requester_email: str | None = None
    origin_server_id: str | None = None
    origin_username: str | None = None
    origin_user_id: str | None = None
    priority: TicketPriority | None = None
    labels: list[str] | None = None
    """
    Labels of the issue when created through the generic endpoint.  When
    omitted, defaults to `["support-portal"]`.
    """


class ServiceRequest(BaseModel, frozen=True):
    """
    The "customer portal" creation result returned by the service desk API.
    """

    issue_id: str
    issue_key: IssueKey
    service_desk_id: str | None = None
    request_type_id: str | None = None
    created_date: str | None = None
    reporter: str | None = None
    current_status: str | None = None


class CreateRequestResult(BaseModel, frozen=True):
    issue_key: str
    """
    Usually an `IssueKey`, but mock keys ("MOCK-LZ1ABC2") do not carry a
    project prefix and are kept as plain strings.
    """
    issue_id: str
    created_via: Literal["mock", "service_desk", "issue"]
    service_request: ServiceRequest | None = None


##
## Users & Workflow
##


class JiraUser(BaseModel, frozen=True):
    account_id: str
    display_name: str
    active: bool = True


class JiraTransition(BaseModel, frozen=True):
    id: str
    name: str
    to_status: str
    to_category: str | None = None
    """
    The display name of the target status category, e.g., "In Progress".
    """

    def matches(self, target_status: str) -> Literal[0, 1, 2] | None:
        """
        Return the priority of the match against the requested status, where
        lower is better: the target status name, then the transition name,
        then the target status category name.  Comparisons ignore case.
        """
        target = target_status.lower()
        if self.to_status.lower() == target:
            return 0
        if self.name.lower() == target:
            return 1
        if self.to_category and self.to_category.lower() == target:
            return 2
        return None

    def describe(self) -> str:
        return f"{self.name} -> {self.to_status} ({self.to_category or '?'})"


class RequestType(BaseModel, frozen=True):
    id: str
    name: str
    description: str = ""
