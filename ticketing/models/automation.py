from pydantic import BaseModel, Field
from typing import Any

from base.strings.atlassian import CloudId


class AutomationActor(BaseModel, frozen=True, populate_by_name=True):
    """
    The account behind the admin credentials, which Automation rules run as.
    """

    account_id: str = Field(alias="accountId")
    display_name: str = Field(default="", alias="displayName")


class AutomationRuleSummary(BaseModel, frozen=True, populate_by_name=True):
    uuid: str
    name: str
    state: str = ""
    description: str = ""
    author_account_id: str | None = Field(default=None, alias="authorAccountId")
    actor_account_id: str | None = Field(default=None, alias="actorAccountId")
    created: int | None = None
    updated: int | None = None
    labels: list[str] = Field(default_factory=list)
    rule_scope_aris: list[str] = Field(default_factory=list, alias="ruleScopeARIs")
    """
    The ARIs of the projects (or site) that the rule applies to.
    """


class AutomationRuleDetails(BaseModel, frozen=True):
    """
    The full configuration of a rule, kept as returned by Automation since
    its components are not interpreted here.
    """

    rule: dict[str, Any]
    connections: list[Any] = Field(default_factory=list)


class WebhookRuleOptions(BaseModel, frozen=True):
    cloud_id: CloudId
    project_id: str
    """
    The numeric ID of the Jira project, not its key.
    """
    owner_account_id: str
    author_account_id: str
    webhook_url: str
