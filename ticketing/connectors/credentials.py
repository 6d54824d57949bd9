import logging

from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Any, Literal

from base.strings.atlassian import CloudId, ProjectKey
from base.strings.auth import authorization_basic_credentials, authorization_bearer

from ticketing.config import DEFAULT_PROJECT_KEY, TicketingConfig

logger = logging.getLogger(__name__)

OAUTH_GATEWAY_URL = "https://api.atlassian.com/ex/jira"

AuthMode = Literal["basic", "oauth"]


##
## Config
##


class JiraBasicConfig(BaseModel, frozen=True, extra="forbid"):
    """
    Operator credentials: requests go directly to the site, authenticated
    with an API token.
    """

    kind: Literal["basic"] = "basic"
    domain: str = ""
    account_email: str = ""
    api_token: str = Field(default="", repr=False)
    service_desk_id: str = ""
    request_type_id: str = ""
    project_key: ProjectKey | None = None

    @staticmethod
    def from_env(**overrides: Any) -> "JiraBasicConfig":
        """
        Fill the fields that are not overridden (or overridden with an empty
        value) from the `ATLASSIAN_*` and `JIRA_*` environment variables.
        """
        env = TicketingConfig.atlassian
        values: dict[str, Any] = {
            "domain": env.domain,
            "account_email": env.account_email,
            "api_token": env.api_token,
            "service_desk_id": env.service_desk_id,
            "request_type_id": env.request_type_id,
            "project_key": ProjectKey.try_decode(env.project_key),
        }
        values.update({key: value for key, value in overrides.items() if value})
        return JiraBasicConfig.model_validate(values)


class JiraOAuthConfig(BaseModel, frozen=True, extra="forbid"):
    """
    Delegated access to the site of a tenant, through the Atlassian gateway.
    """

    kind: Literal["oauth"] = "oauth"
    site_cloud_id: CloudId
    access_token: str = Field(min_length=1, repr=False)
    service_desk_id: str = ""
    request_type_id: str = ""
    project_key: ProjectKey | None = None


JiraClientConfig = Annotated[
    JiraBasicConfig | JiraOAuthConfig,
    Field(discriminator="kind"),
]

JIRA_CLIENT_CONFIG_ADAPTER: TypeAdapter[JiraClientConfig] = TypeAdapter(
    JiraClientConfig
)


def parse_client_config(data: Any) -> JiraBasicConfig | JiraOAuthConfig:
    """
    Parse a configuration persisted as JSON.  Raises `ValidationError` when
    the fields of both modes are mixed.
    """
    return JIRA_CLIENT_CONFIG_ADAPTER.validate_python(data)


##
## Connection
##


class JiraConnection(BaseModel, frozen=True):
    """
    The connection parameters of a client, resolved once at construction.
    """

    mode: AuthMode
    configured: bool
    api_url: str
    """
    The base URL of the platform REST API, e.g., "https://x/rest/api/3".
    """
    service_desk_api_url: str
    authorization: str | None = Field(default=None, repr=False)
    service_desk_id: str
    request_type_id: str
    project_key: ProjectKey

    def is_available(self) -> bool:
        return self.configured and self.authorization is not None


def resolve_connection(config: JiraBasicConfig | JiraOAuthConfig) -> JiraConnection:
    match config:
        case JiraOAuthConfig():
            base_url = f"{OAUTH_GATEWAY_URL}/{config.site_cloud_id}"
            return JiraConnection(
                mode="oauth",
                configured=True,
                api_url=f"{base_url}/rest/api/3",
                service_desk_api_url=f"{base_url}/rest/servicedeskapi",
                authorization=authorization_bearer(config.access_token),
                service_desk_id=config.service_desk_id,
                request_type_id=config.request_type_id,
                project_key=config.project_key or _default_project_key(),
            )
        case JiraBasicConfig():
            configured = bool(
                config.domain
                and config.account_email
                and config.api_token
                and config.service_desk_id
            )
            return JiraConnection(
                mode="basic",
                configured=configured,
                api_url=f"https://{config.domain}/rest/api/3" if config.domain else "",
                service_desk_api_url=(
                    f"https://{config.domain}/rest/servicedeskapi"
                    if config.domain
                    else ""
                ),
                authorization=(
                    authorization_basic_credentials(
                        config.account_email, config.api_token
                    )
                    if configured
                    else None
                ),
                service_desk_id=config.service_desk_id,
                request_type_id=config.request_type_id,
                project_key=config.project_key or _default_project_key(),
            )


def resolve_automation_connection(
    cloud_id: CloudId,
    account_email: str,
    api_token: str,
) -> JiraConnection:
    """
    The connection of an admin running one-off Automation calls: operator
    credentials, sent through the gateway of the site since the Automation
    API is only served there.  The credentials are never stored.
    """
    configured = bool(account_email and api_token)
    return JiraConnection(
        mode="basic",
        configured=configured,
        api_url=f"{OAUTH_GATEWAY_URL}/{cloud_id}/rest/api/3",
        service_desk_api_url=f"{OAUTH_GATEWAY_URL}/{cloud_id}/rest/servicedeskapi",
        authorization=(
            authorization_basic_credentials(account_email, api_token)
            if configured
            else None
        ),
        service_desk_id="",
        request_type_id="",
        project_key=_default_project_key(),
    )


def _default_project_key() -> ProjectKey:
    if project_key := ProjectKey.try_decode(TicketingConfig.default_project_key()):
        return project_key
    logger.warning(
        "Ignoring invalid JIRA_PROJECT_KEY, using %s instead", DEFAULT_PROJECT_KEY
    )
    return ProjectKey.decode(DEFAULT_PROJECT_KEY)
