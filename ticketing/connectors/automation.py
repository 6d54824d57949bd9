import logging

from collections.abc import Callable
from dataclasses import dataclass
from pydantic import ValidationError
from typing import Any
from urllib.parse import quote

from base.models.context import ServiceContext
from base.strings.atlassian import CloudId

from ticketing.connectors.credentials import (
    JiraConnection,
    resolve_automation_connection,
)
from ticketing.connectors.executor import JiraExecutor
from ticketing.models.automation import (
    AutomationActor,
    AutomationRuleDetails,
    AutomationRuleSummary,
)
from ticketing.models.exceptions import JiraFailure
from ticketing.models.outcome import JiraOutcome
from ticketing.services.transport import SvcTransport

logger = logging.getLogger(__name__)

AUTOMATION_API_URL = "https://api.atlassian.com/automation/public/jira"


@dataclass(kw_only=True)
class JiraAutomationClient:
    """
    Manages the Automation rules of a site, e.g., the webhooks that notify
    the portal of new comments.  Used for one-off admin operations, with
    credentials that are passed for the call and never stored.

    NOTE: Automation offers no endpoint to delete a rule: rules are removed
    from the project settings in Jira.
    """

    connection: JiraConnection
    executor: JiraExecutor
    rules_url: str

    @staticmethod
    def initialize(
        cloud_id: CloudId,
        account_email: str,
        api_token: str,
        transport: SvcTransport,
    ) -> "JiraAutomationClient":
        connection = resolve_automation_connection(cloud_id, account_email, api_token)
        return JiraAutomationClient(
            connection=connection,
            executor=JiraExecutor(connection=connection, transport=transport),
            rules_url=f"{AUTOMATION_API_URL}/{cloud_id}/rest/v1/rule",
        )

    @staticmethod
    def from_context(
        context: ServiceContext,
        cloud_id: CloudId,
        account_email: str,
        api_token: str,
    ) -> "JiraAutomationClient":
        return JiraAutomationClient.initialize(
            cloud_id, account_email, api_token, context.service(SvcTransport)
        )

    async def validate_credentials(self) -> JiraOutcome[AutomationActor]:
        """
        Check the credentials against the site.  Invalid ones are reported as
        `remote_rejected` with status 401.
        """
        outcome = await self.executor.execute(
            "GET", f"{self.connection.api_url}/myself"
        )
        return _validated(outcome, AutomationActor.model_validate, "account")

    async def list_rules(
        self,
        project_ari: str | None = None,
    ) -> JiraOutcome[list[AutomationRuleSummary]]:
        """
        List the rules of the site, or only those scoped to the project when
        its ARI is given (see `build_project_ari`).
        """
        outcome = await self.executor.execute("GET", f"{self.rules_url}/summary")
        outcome = _validated(outcome, _parse_rule_summaries, "rule list")
        if outcome.value is None or project_ari is None:
            return outcome
        return JiraOutcome.ok(
            [rule for rule in outcome.value if project_ari in rule.rule_scope_aris]
        )

    async def get_rule(self, uuid: str) -> JiraOutcome[AutomationRuleDetails]:
        outcome = await self.executor.execute(
            "GET", f"{self.rules_url}/{quote(uuid, safe='')}"
        )
        if outcome.failure and outcome.failure.status == 404:  # noqa: PLR2004
            return JiraOutcome.fail(
                JiraFailure.not_found("automation rule", status=404)
            )
        return _validated(outcome, AutomationRuleDetails.model_validate, "rule")

    async def create_rule(self, payload: dict[str, Any]) -> JiraOutcome[str]:
        """
        Create a rule from a `{"rule": {...}}` payload, as built by the
        `ticketing.domain.automation_rules` builders.  Returns its UUID.
        """
        outcome = await self.executor.execute("POST", self.rules_url, json=payload)
        return _validated(outcome, _parse_rule_uuid, "created rule")


def _validated[T](
    outcome: JiraOutcome[Any],
    parse: Callable[[Any], T],
    what: str,
) -> JiraOutcome[T]:
    if outcome.failure:
        return JiraOutcome.fail(outcome.failure)
    try:
        return JiraOutcome.ok(parse(outcome.value))
    except (TypeError, ValueError, ValidationError):
        logger.warning("Automation returned an invalid %s", what)
        return JiraOutcome.fail(JiraFailure.transport_failure())


def _parse_rule_summaries(data: Any) -> list[AutomationRuleSummary]:
    items = data.get("data") if isinstance(data, dict) else None
    return [AutomationRuleSummary.model_validate(item) for item in items or []]


def _parse_rule_uuid(data: Any) -> str:
    if not isinstance(data, dict) or not isinstance(data.get("ruleUuid"), str):
        raise ValueError("missing ruleUuid")
    return data["ruleUuid"]
