import hmac
import logging

from dataclasses import dataclass
from datetime import datetime, timedelta
from pydantic import ValidationError
from typing import Any
from urllib.parse import urlencode

from base.core.unique_id import (
    base36_from_int,
    base36_to_int,
    unique_id_random_hex,
    unix_millis,
)
from base.strings.auth import authorization_bearer

from ticketing.config import TicketingConfig
from ticketing.models.exceptions import OAuthError, TransportError, VaultError
from ticketing.models.oauth import AtlassianSite, TokenSet
from ticketing.services.transport import SvcTransport, TransportResponse
from ticketing.services.vault import SvcVault

logger = logging.getLogger(__name__)

ATLASSIAN_AUTHORIZE_URL = "https://auth.atlassian.com/authorize"
ATLASSIAN_TOKEN_URL = "https://auth.atlassian.com/oauth/token"
ATLASSIAN_REVOKE_URL = "https://auth.atlassian.com/oauth/revoke"
ATLASSIAN_RESOURCES_URL = "https://api.atlassian.com/oauth/token/accessible-resources"
ATLASSIAN_AUDIENCE = "api.atlassian.com"

OAUTH_SCOPES = " ".join(
    [
        "offline_access",
        "read:jira-work",
        "write:jira-work",
        "read:jira-user",
        "manage:jira-configuration",
        "read:servicedesk-request",
        "write:servicedesk-request",
    ]
)
"""
Classic scopes only: Atlassian runs separate authorization flows for classic
and granular scopes, and mixing them breaks the token exchange.
"""

STATE_MAX_AGE = timedelta(minutes=10)
STATE_RANDOM_BYTES = 32


##
## State
##


def generate_state(now: datetime | None = None) -> str:
    """
    An anti-forgery value for the consent redirect: random hex, then the
    creation time in milliseconds, in base 36.
    """
    random_hex = unique_id_random_hex(STATE_RANDOM_BYTES)
    return f"{random_hex}.{base36_from_int(unix_millis(now))}"


def verify_state(
    state: str | None,
    expected: str | None,
    *,
    max_age: timedelta = STATE_MAX_AGE,
    now: datetime | None = None,
) -> bool:
    """
    Check the `state` returned to the callback against the value stored when
    the flow started, and reject it once older than `max_age`.
    """
    if not state or not expected:
        return False
    if not hmac.compare_digest(state.encode(), expected.encode()):
        return False

    _, _, timestamp_str = state.rpartition(".")
    if (created_ms := base36_to_int(timestamp_str)) is None:
        return False
    return unix_millis(now) - created_ms <= max_age.total_seconds() * 1000


##
## Client
##


@dataclass(kw_only=True)
class AtlassianOAuth:
    """
    The three-legged OAuth flow of Jira Cloud: consent URL, code exchange,
    token refresh, site discovery and revocation.
    """

    transport: SvcTransport
    vault: SvcVault
    client_id: str | None
    client_secret: str | None

    @staticmethod
    def initialize(transport: SvcTransport, vault: SvcVault) -> "AtlassianOAuth":
        return AtlassianOAuth(
            transport=transport,
            vault=vault,
            client_id=TicketingConfig.oauth.client_id,
            client_secret=TicketingConfig.oauth.client_secret,
        )

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _client_credentials(self) -> tuple[str, str]:
        if not self.client_id or not self.client_secret:
            raise OAuthError.not_configured()
        return self.client_id, self.client_secret

    def build_authorize_url(self, state: str, callback_url: str) -> str:
        """
        The consent URL, with `prompt=consent` so that the user explicitly
        approves every new connection.
        """
        client_id, _ = self._client_credentials()
        params = {
            "audience": ATLASSIAN_AUDIENCE,
            "client_id": client_id,
            "scope": OAUTH_SCOPES,
            "redirect_uri": callback_url,
            "state": state,
            "response_type": "code",
            "prompt": "consent",
        }
        return f"{ATLASSIAN_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenSet:
        client_id, client_secret = self._client_credentials()
        logger.info("Exchanging authorization code for tokens")

        response = await self._post_token_endpoint(
            "Token exchange",
            {
                "grant_type": "authorization_code",
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            },
        )
        return _parse_token_set("Token exchange", response)

    async def refresh_access_token(self, encrypted_refresh_token: str) -> TokenSet:
        """
        Exchange the stored refresh token for a new token pair.

        NOTE: Not idempotent: Atlassian invalidates the refresh token once used,
        so the returned `TokenSet` must replace the stored one, and concurrent
        refreshes of the same token must be avoided (see `TokenManager`).
        """
        client_id, client_secret = self._client_credentials()
        response = await self._post_token_endpoint(
            "Token refresh",
            {
                "grant_type": "refresh_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": self.vault.decrypt_str(encrypted_refresh_token),
            },
        )
        return _parse_token_set("Token refresh", response)

    async def discover_sites(self, access_token: str) -> list[AtlassianSite]:
        """
        List the sites that the token grants access to.  The `id` of a site is
        the cloud ID used to route OAuth-mode requests.
        """
        try:
            response = await self.transport.request(
                "GET",
                ATLASSIAN_RESOURCES_URL,
                headers={
                    "Accept": "application/json",
                    "Authorization": authorization_bearer(access_token),
                },
            )
        except TransportError as exc:
            raise OAuthError.unavailable("Accessible resources") from exc

        if not response.ok():
            raise OAuthError.rejected("Accessible resources", response.status)

        try:
            data = response.parse_json()
            if not isinstance(data, list):
                raise OAuthError.rejected("Accessible resources", response.status)
            return [AtlassianSite.model_validate(item) for item in data]
        except (ValueError, ValidationError) as exc:
            raise OAuthError.rejected("Accessible resources", response.status) from exc

    async def revoke(self, encrypted_refresh_token: str) -> bool:
        """
        Best-effort revocation, for the disconnect flow: failures are logged
        and reported as False, never raised.
        """
        try:
            client_id, client_secret = self._client_credentials()
            response = await self.transport.request(
                "POST",
                ATLASSIAN_REVOKE_URL,
                headers={"Content-Type": "application/json"},
                json={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "token": self.vault.decrypt_str(encrypted_refresh_token),
                },
            )
        except (OAuthError, TransportError, VaultError):
            if TicketingConfig.verbose:
                logger.exception("Token revocation failed")
            else:
                logger.error("Token revocation failed")
            return False

        if not response.ok():
            logger.error("Token revocation failed (%d)", response.status)
            return False
        return True

    async def _post_token_endpoint(
        self,
        action: str,
        body: dict[str, str],
    ) -> TransportResponse:
        """
        Post JSON, as documented by Atlassian.  Some environments enforce the
        form encoding of RFC 6749 and answer "401 Unauthorized" instead, in
        which case the request is sent once more, form-encoded.
        """
        try:
            response = await self.transport.request(
                "POST",
                ATLASSIAN_TOKEN_URL,
                headers={"Content-Type": "application/json"},
                json=body,
            )
            if response.status == 401:  # noqa: PLR2004
                logger.info("%s returned 401, retrying form-encoded", action)
                response = await self.transport.request(
                    "POST",
                    ATLASSIAN_TOKEN_URL,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    form=body,
                )
        except TransportError as exc:
            raise OAuthError.unavailable(action) from exc

        if not response.ok():
            logger.error("%s failed (%d)", action, response.status)
            raise OAuthError.rejected(action, response.status)
        return response


def _parse_token_set(action: str, response: TransportResponse) -> TokenSet:
    try:
        data: Any = response.parse_json()
        return TokenSet.model_validate(data)
    except (ValueError, ValidationError) as exc:
        raise OAuthError.rejected(action, response.status) from exc
