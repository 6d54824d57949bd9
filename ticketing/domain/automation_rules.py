import json

from typing import Any

from base.strings.atlassian import CloudId

from ticketing.models.automation import WebhookRuleOptions

COMMENT_WEBHOOK_RULE_NAME = "Webhook - Comment Notification"
STATUS_CHANGED_WEBHOOK_RULE_NAME = "Webhook - Status Changed"


def build_project_ari(cloud_id: CloudId, project_id: str) -> str:
    return f"ari:cloud:jira:{cloud_id}:project/{project_id}"


def _rule_shell(
    name: str,
    options: WebhookRuleOptions,
    trigger: dict[str, Any],
    actions: list[dict[str, Any]],
) -> dict[str, Any]:
    """
    Wrap a trigger and its actions into the payload accepted by the creation
    endpoint of Automation, i.e., `{"rule": {...}}` with the `component`,
    `schemaVersion`, `conditions` and `children` fields that it requires on
    every component.
    """
    return {
        "rule": {
            "name": name,
            "state": "ENABLED",
            "description": "",
            "canOtherRuleTrigger": False,
            "notifyOnError": "FIRSTERROR",
            "authorAccountId": options.author_account_id,
            "actor": {"type": "ACCOUNT_ID", "actor": options.owner_account_id},
            "trigger": {
                "component": "TRIGGER",
                "schemaVersion": 1,
                **trigger,
                "conditions": [],
            },
            "components": [
                {
                    "component": "ACTION",
                    "schemaVersion": 1,
                    **action,
                    "conditions": [],
                    "children": [],
                }
                for action in actions
            ],
            "ruleScopeARIs": [build_project_ari(options.cloud_id, options.project_id)],
            "labels": [],
            "writeAccessType": "OWNER_ONLY",
            "collaborators": [],
        }
    }


def _webhook_action(webhook_url: str, body: dict[str, str]) -> dict[str, Any]:
    return {
        "type": "jira.issue.outgoing.webhook",
        "value": {
            "url": webhook_url,
            "method": "POST",
            "headers": [{"name": "Content-Type", "value": "application/json"}],
            "sendIssue": False,
            "contentType": "custom",
            "customBody": json.dumps(body, indent=2),
        },
    }


def build_comment_webhook_rule(options: WebhookRuleOptions) -> dict[str, Any]:
    """
    When a comment is added to an issue of the project, POST its issue key
    and comment ID to the webhook.
    """
    project_ari = build_project_ari(options.cloud_id, options.project_id)
    return _rule_shell(
        COMMENT_WEBHOOK_RULE_NAME,
        options,
        {
            "type": "jira.issue.event.trigger:commented",
            "value": {"eventTypes": [], "eventFilters": [project_ari]},
        },
        [
            _webhook_action(
                options.webhook_url,
                {
                    "webhookEvent": "comment_created",
                    "issueKey": "{{issue.key}}",
                    "commentId": "{{comment.id}}",
                },
            )
        ],
    )


def build_status_changed_webhook_rule(options: WebhookRuleOptions) -> dict[str, Any]:
    """
    When an issue of the project is transitioned, from any status to any
    other, POST its issue key and both status names to the webhook.
    """
    project_ari = build_project_ari(options.cloud_id, options.project_id)
    return _rule_shell(
        STATUS_CHANGED_WEBHOOK_RULE_NAME,
        options,
        {
            "type": "jira.issue.event.trigger:transitioned",
            "value": {"eventFilters": [project_ari], "fromStatus": [], "toStatus": []},
        },
        [
            _webhook_action(
                options.webhook_url,
                {
                    "webhookEvent": "status_changed",
                    "issueKey": "{{issue.key}}",
                    "fromStatus": "{{changelog.fromString}}",
                    "toStatus": "{{changelog.toString}}",
                },
            )
        ],
    )
