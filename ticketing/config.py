import logging
import os

from base.config import BaseConfig

logger = logging.getLogger(__name__)


DEFAULT_PROJECT_KEY = "SUPPORT"
"""
The Jira project used by the generic issue-creation fallback and by JQL
searches when neither the client configuration nor `JIRA_PROJECT_KEY` name
one.
"""


class AtlassianConfig:
    """
    Operator credentials for the "basic" authentication mode, used when a
    client is constructed with `JiraBasicConfig.from_env()`.
    """

    domain = os.getenv("ATLASSIAN_DOMAIN", "")
    account_email = os.getenv("ATLASSIAN_EMAIL", "")
    api_token = os.getenv("ATLASSIAN_API_TOKEN", "")
    service_desk_id = os.getenv("JIRA_SERVICE_DESK_ID", "")
    request_type_id = os.getenv("JIRA_REQUEST_TYPE_ID", "")
    project_key = os.getenv("JIRA_PROJECT_KEY", "")


class OAuthConfig:
    client_id: str | None = os.getenv("ATLASSIAN_OAUTH_CLIENT_ID") or None
    client_secret: str | None = os.getenv("ATLASSIAN_OAUTH_CLIENT_SECRET") or None


class VaultConfig:
    encryption_key: str | None = os.getenv("TICKETING_ENCRYPTION_KEY") or None
    """
    The secret from which the AES-256 wrapping key of stored OAuth tokens is
    derived.  When missing, `SvcVault.initialize` refuses to start.
    """


class HttpConfig:
    timeout_seconds = float(os.getenv("TICKETING_HTTP_TIMEOUT_SECONDS") or "30")
    """
    Total timeout of a single outbound request, connection included.
    """


class TicketingConfig(BaseConfig):
    atlassian = AtlassianConfig()
    http = HttpConfig()
    oauth = OAuthConfig()
    vault = VaultConfig()

    @classmethod
    def default_project_key(cls) -> str:
        return cls.atlassian.project_key or DEFAULT_PROJECT_KEY
