from typing import Any

from base.core.values import as_yaml
from base.models.context import ServiceContext
from base.strings.atlassian import CloudId, ProjectKey

from ticketing.connectors.credentials import JiraBasicConfig, JiraOAuthConfig
from ticketing.connectors.jira import JiraServiceDeskClient
from ticketing.models.outcome import JiraOutcome
from ticketing.services.transport import SvcTransportStub, TransportResponse
from ticketing.services.vault import SvcVaultStub

SITE_URL = "https://acme.atlassian.net"
API_URL = f"{SITE_URL}/rest/api/3"
SD_URL = f"{SITE_URL}/rest/servicedeskapi"

CLOUD_ID = CloudId.decode("1324a887-45db-1bf4-1e99-ef0ff456d421")
GATEWAY_URL = f"https://api.atlassian.com/ex/jira/{CLOUD_ID}"

BASIC_CONFIG = JiraBasicConfig(
    domain="acme.atlassian.net",
    account_email="agent@acme.com",
    api_token="api-token",
    service_desk_id="4",
    request_type_id="17",
    project_key=ProjectKey.decode("SUPPORT"),
)

OAUTH_CONFIG = JiraOAuthConfig(
    site_cloud_id=CLOUD_ID,
    access_token="oauth-access-token",
    service_desk_id="4",
    project_key=ProjectKey.decode("SUPPORT"),
)


def given_context() -> ServiceContext:
    context = ServiceContext(services=[])
    context.add_service(SvcTransportStub.initialize())
    context.add_service(SvcVaultStub.initialize())
    return context


def given_client(
    config: JiraBasicConfig | JiraOAuthConfig = BASIC_CONFIG,
) -> tuple[JiraServiceDeskClient, SvcTransportStub]:
    context = given_context()
    client = JiraServiceDeskClient.from_context(context, config)
    return client, context.service(SvcTransportStub)


def given_issue_data(
    key: str = "SUPPORT-142",
    *,
    status: str = "Waiting for support",
    category: str = "new",
    description: Any = None,
) -> dict[str, Any]:
    return {
        "id": "10042",
        "key": key,
        "fields": {
            "summary": "Cannot log in",
            "description": description,
            "status": {"name": status, "statusCategory": {"key": category}},
            "priority": {"name": "Medium"},
            "created": "2025-03-04T10:15:00.000+0000",
            "updated": "2025-03-04T11:00:00.000+0000",
            "reporter": {"displayName": "Ada Lovelace", "accountId": "acc-ada"},
            "labels": ["support-portal"],
        },
    }


def json_response(data: Any, status: int = 200) -> TransportResponse:
    return TransportResponse.from_json(data, status=status)


def log_outcome(outcome: JiraOutcome[Any]) -> None:
    if outcome.failure:
        print(f"<failure>\n{as_yaml(outcome.failure)}\n</failure>")
    else:
        print(f"<value>\n{as_yaml(outcome.value)}\n</value>")
