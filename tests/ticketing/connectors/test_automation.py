import pytest

from base.strings.auth import authorization_basic_credentials

from ticketing.connectors.automation import JiraAutomationClient
from ticketing.domain.automation_rules import build_comment_webhook_rule
from ticketing.models.automation import WebhookRuleOptions
from ticketing.models.exceptions import TransportError
from ticketing.services.transport import SvcTransportStub, TransportResponse

from tests.ticketing.utils_jira import (
    CLOUD_ID,
    GATEWAY_URL,
    given_context,
    json_response,
    log_outcome,
)

RULES_URL = f"https://api.atlassian.com/automation/public/jira/{CLOUD_ID}/rest/v1/rule"
PROJECT_ARI = f"ari:cloud:jira:{CLOUD_ID}:project/10001"

RULE_SUMMARIES = {
    "links": {"self": None, "next": None, "prev": None},
    "data": [
        {
            "uuid": "0190-aaaa",
            "name": "Webhook - Comment Notification",
            "state": "ENABLED",
            "description": "",
            "authorAccountId": "acc-admin",
            "actorAccountId": "acc-admin",
            "created": 1735689600000,
            "updated": 1735689600000,
            "labels": [],
            "ruleScopeARIs": [PROJECT_ARI],
        },
        {
            "uuid": "0190-bbbb",
            "name": "Auto-close stale tickets",
            "state": "DISABLED",
            "ruleScopeARIs": [f"ari:cloud:jira:{CLOUD_ID}:project/20002"],
        },
    ],
}


def given_automation(
    account_email: str = "admin@acme.com",
    api_token: str = "admin-token",
) -> tuple[JiraAutomationClient, SvcTransportStub]:
    context = given_context()
    client = JiraAutomationClient.from_context(
        context, CLOUD_ID, account_email, api_token
    )
    return client, context.service(SvcTransportStub)


##
## validate_credentials
##


@pytest.mark.asyncio
async def test_validate_credentials() -> None:
    client, transport = given_automation()
    transport.stub(
        "GET",
        f"{GATEWAY_URL}/rest/api/3/myself",
        json_response({"accountId": "acc-admin", "displayName": "Site Admin"}),
    )

    outcome = await client.validate_credentials()
    log_outcome(outcome)

    assert outcome.value
    assert outcome.value.account_id == "acc-admin"
    assert outcome.value.display_name == "Site Admin"
    assert transport.calls[0].headers["Authorization"] == (
        authorization_basic_credentials("admin@acme.com", "admin-token")
    )


@pytest.mark.asyncio
async def test_validate_credentials_invalid() -> None:
    client, transport = given_automation()
    transport.stub(
        "GET",
        f"{GATEWAY_URL}/rest/api/3/myself",
        TransportResponse(status=401, body=b"<html>Unauthorized</html>"),
    )

    outcome = await client.validate_credentials()
    assert outcome.failure
    assert outcome.failure.kind == "remote_rejected"
    assert outcome.failure.status == 401
    assert "Unauthorized" not in outcome.failure.message


@pytest.mark.asyncio
async def test_validate_credentials_missing() -> None:
    client, transport = given_automation(api_token="")

    outcome = await client.validate_credentials()
    assert outcome.failure
    assert outcome.failure.kind == "not_configured"
    assert transport.calls == []


##
## list_rules
##


@pytest.mark.asyncio
async def test_list_rules() -> None:
    client, transport = given_automation()
    transport.stub("GET", f"{RULES_URL}/summary", json_response(RULE_SUMMARIES))

    outcome = await client.list_rules()
    log_outcome(outcome)

    assert outcome.value
    assert [rule.uuid for rule in outcome.value] == ["0190-aaaa", "0190-bbbb"]
    assert outcome.value[0].rule_scope_aris == [PROJECT_ARI]
    assert outcome.value[1].author_account_id is None


@pytest.mark.asyncio
async def test_list_rules_of_project() -> None:
    client, transport = given_automation()
    transport.stub("GET", f"{RULES_URL}/summary", json_response(RULE_SUMMARIES))

    outcome = await client.list_rules(PROJECT_ARI)
    assert outcome.value
    assert [rule.uuid for rule in outcome.value] == ["0190-aaaa"]


@pytest.mark.asyncio
async def test_list_rules_empty() -> None:
    client, transport = given_automation()
    transport.stub("GET", f"{RULES_URL}/summary", json_response({"links": {}}))

    outcome = await client.list_rules()
    assert outcome.is_ok()
    assert outcome.value == []


@pytest.mark.asyncio
async def test_list_rules_invalid_body() -> None:
    client, transport = given_automation()
    transport.stub(
        "GET", f"{RULES_URL}/summary", json_response({"data": [{"state": "ENABLED"}]})
    )

    outcome = await client.list_rules()
    assert outcome.failure
    assert outcome.failure.kind == "transport_failure"


@pytest.mark.asyncio
async def test_list_rules_unavailable() -> None:
    client, transport = given_automation()
    transport.stub("GET", f"{RULES_URL}/summary", TransportError.unavailable("GET"))

    outcome = await client.list_rules()
    assert outcome.failure
    assert outcome.failure.kind == "transport_failure"


##
## get_rule
##


@pytest.mark.asyncio
async def test_get_rule() -> None:
    client, transport = given_automation()
    transport.stub(
        "GET",
        f"{RULES_URL}/0190-aaaa",
        json_response(
            {
                "rule": {"name": "Webhook - Comment Notification", "state": "ENABLED"},
                "connections": [],
            }
        ),
    )

    outcome = await client.get_rule("0190-aaaa")
    assert outcome.value
    assert outcome.value.rule["name"] == "Webhook - Comment Notification"
    assert outcome.value.connections == []


@pytest.mark.asyncio
async def test_get_rule_escapes_uuid() -> None:
    client, transport = given_automation()
    transport.stub("GET", f"{RULES_URL}/..%2Fsummary", TransportResponse(status=404))

    outcome = await client.get_rule("../summary")
    assert outcome.failure
    assert outcome.failure.kind == "not_found"
    assert transport.calls[0].url == f"{RULES_URL}/..%2Fsummary"


##
## create_rule
##


@pytest.mark.asyncio
async def test_create_rule() -> None:
    client, transport = given_automation()
    transport.stub("POST", RULES_URL, json_response({"ruleUuid": "0190-cccc"}, 201))
    payload = build_comment_webhook_rule(
        WebhookRuleOptions(
            cloud_id=CLOUD_ID,
            project_id="10001",
            owner_account_id="acc-admin",
            author_account_id="acc-admin",
            webhook_url="https://portal.example.com/webhooks/jira",
        )
    )

    outcome = await client.create_rule(payload)
    log_outcome(outcome)

    assert outcome.value == "0190-cccc"
    assert transport.calls[0].json_body == payload
    assert transport.calls[0].headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_create_rule_rejected() -> None:
    client, transport = given_automation()
    transport.stub("POST", RULES_URL, TransportResponse(status=400))

    outcome = await client.create_rule({"rule": {}})
    assert outcome.failure
    assert outcome.failure.kind == "remote_rejected"
    assert outcome.failure.status == 400


@pytest.mark.asyncio
async def test_create_rule_without_uuid() -> None:
    client, transport = given_automation()
    transport.stub("POST", RULES_URL, json_response({}, 201))

    outcome = await client.create_rule({"rule": {}})
    assert outcome.failure
    assert outcome.failure.kind == "transport_failure"
