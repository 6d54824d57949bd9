import pytest

from datetime import datetime, timedelta, UTC
from urllib.parse import parse_qs, urlparse

from ticketing.connectors.oauth import (
    ATLASSIAN_RESOURCES_URL,
    ATLASSIAN_REVOKE_URL,
    ATLASSIAN_TOKEN_URL,
    AtlassianOAuth,
    generate_state,
    OAUTH_SCOPES,
    verify_state,
)
from ticketing.models.exceptions import OAuthError, TransportError
from ticketing.services.transport import SvcTransportStub, TransportResponse
from ticketing.services.vault import SvcVaultAes, SvcVaultStub

from tests.ticketing.utils_jira import CLOUD_ID, json_response

CALLBACK_URL = "https://portal.example.com/oauth/callback"

TOKEN_RESPONSE = {
    "access_token": "at-new",
    "refresh_token": "rt-new",
    "expires_in": 3600,
    "scope": OAUTH_SCOPES,
}


def given_oauth() -> tuple[AtlassianOAuth, SvcTransportStub, SvcVaultStub]:
    transport = SvcTransportStub.initialize()
    vault = SvcVaultStub.initialize()
    return AtlassianOAuth.initialize(transport, vault), transport, vault


##
## State
##


def test_state_roundtrip() -> None:
    now = datetime(2025, 1, 1, tzinfo=UTC)
    state = generate_state(now)
    print(state)

    random_hex, timestamp = state.split(".")
    assert len(random_hex) == 64
    assert timestamp == "m5d4ruo0"
    assert verify_state(state, state, now=now + timedelta(minutes=9))


def test_state_expired() -> None:
    now = datetime(2025, 1, 1, tzinfo=UTC)
    state = generate_state(now)
    assert not verify_state(state, state, now=now + timedelta(minutes=11))


def test_state_mismatch() -> None:
    state = generate_state()
    assert not verify_state(state, generate_state())
    assert not verify_state(None, state)
    assert not verify_state(state, None)
    assert not verify_state("forged.!!", "forged.!!")


##
## build_authorize_url
##


def test_build_authorize_url() -> None:
    oauth, _, _ = given_oauth()
    url = oauth.build_authorize_url("state-123", CALLBACK_URL)
    print(url)

    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
        "https://auth.atlassian.com/authorize"
    )
    assert parse_qs(parsed.query) == {
        "audience": ["api.atlassian.com"],
        "client_id": ["test-client-id"],
        "scope": [OAUTH_SCOPES],
        "redirect_uri": [CALLBACK_URL],
        "state": ["state-123"],
        "response_type": ["code"],
        "prompt": ["consent"],
    }
    assert "offline_access" in OAUTH_SCOPES.split(" ")


def test_build_authorize_url_not_configured() -> None:
    oauth, _, _ = given_oauth()
    oauth.client_secret = None
    assert not oauth.is_configured()
    with pytest.raises(OAuthError, match="ATLASSIAN_OAUTH_CLIENT_ID") as exc_info:
        oauth.build_authorize_url("state-123", CALLBACK_URL)
    assert exc_info.value.code == 503


##
## exchange_code, refresh_access_token
##


@pytest.mark.asyncio
async def test_exchange_code_json() -> None:
    oauth, transport, _ = given_oauth()
    transport.stub("POST", ATLASSIAN_TOKEN_URL, json_response(TOKEN_RESPONSE))

    token_set = await oauth.exchange_code("code-1", CALLBACK_URL)
    assert token_set.access_token == "at-new"
    assert token_set.expires_in == 3600
    assert "at-new" not in repr(token_set)

    [call] = transport.calls
    assert call.headers["Content-Type"] == "application/json"
    assert call.json_body == {
        "grant_type": "authorization_code",
        "client_id": "test-client-id",
        "client_secret": "test-client-secret",
        "code": "code-1",
        "redirect_uri": CALLBACK_URL,
    }


@pytest.mark.asyncio
async def test_exchange_code_form_retry_on_401() -> None:
    oauth, transport, _ = given_oauth()
    transport.stub(
        "POST",
        ATLASSIAN_TOKEN_URL,
        TransportResponse(status=401),
        json_response(TOKEN_RESPONSE),
    )

    token_set = await oauth.exchange_code("code-1", CALLBACK_URL)
    assert token_set.refresh_token == "rt-new"

    json_call, form_call = transport.calls
    assert json_call.json_body
    assert json_call.form is None
    assert form_call.json_body is None
    assert form_call.form == json_call.json_body
    assert form_call.headers["Content-Type"] == "application/x-www-form-urlencoded"


@pytest.mark.asyncio
async def test_exchange_code_rejected_without_retry() -> None:
    oauth, transport, _ = given_oauth()
    transport.stub(
        "POST",
        ATLASSIAN_TOKEN_URL,
        TransportResponse(status=400, body=b'{"error": "invalid_grant"}'),
    )

    with pytest.raises(OAuthError, match=r"Token exchange failed \(400\)"):
        await oauth.exchange_code("code-1", CALLBACK_URL)
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_exchange_code_unavailable() -> None:
    oauth, transport, _ = given_oauth()
    transport.stub("POST", ATLASSIAN_TOKEN_URL, TransportError.unavailable("POST"))

    with pytest.raises(OAuthError) as exc_info:
        await oauth.exchange_code("code-1", CALLBACK_URL)
    assert exc_info.value.error_kind == "retryable"


@pytest.mark.asyncio
async def test_refresh_access_token_decrypts() -> None:
    oauth, transport, vault = given_oauth()
    transport.stub("POST", ATLASSIAN_TOKEN_URL, json_response(TOKEN_RESPONSE))

    token_set = await oauth.refresh_access_token(vault.encrypt_str("rt-old"))
    assert token_set.access_token == "at-new"
    assert transport.calls[0].json_body["grant_type"] == "refresh_token"
    assert transport.calls[0].json_body["refresh_token"] == "rt-old"


@pytest.mark.asyncio
async def test_refresh_access_token_invalid_body() -> None:
    oauth, transport, vault = given_oauth()
    transport.stub("POST", ATLASSIAN_TOKEN_URL, json_response({"error": "none"}))

    with pytest.raises(OAuthError, match="Token refresh failed"):
        await oauth.refresh_access_token(vault.encrypt_str("rt-old"))


##
## discover_sites
##


@pytest.mark.asyncio
async def test_discover_sites() -> None:
    oauth, transport, _ = given_oauth()
    transport.stub(
        "GET",
        ATLASSIAN_RESOURCES_URL,
        json_response(
            [
                {
                    "id": str(CLOUD_ID),
                    "url": "https://acme.atlassian.net",
                    "name": "acme",
                    "scopes": ["read:jira-work"],
                    "avatarUrl": "https://site-admin-avatar-cdn/acme.png",
                }
            ]
        ),
    )

    [site] = await oauth.discover_sites("at-new")
    assert site.id == CLOUD_ID
    assert site.avatar_url == "https://site-admin-avatar-cdn/acme.png"
    assert transport.calls[0].headers["Authorization"] == "Bearer at-new"


@pytest.mark.asyncio
async def test_discover_sites_rejected() -> None:
    oauth, transport, _ = given_oauth()
    transport.stub("GET", ATLASSIAN_RESOURCES_URL, TransportResponse(status=401))

    with pytest.raises(OAuthError, match=r"Accessible resources failed \(401\)"):
        await oauth.discover_sites("at-new")


##
## revoke
##


@pytest.mark.asyncio
async def test_revoke_success() -> None:
    oauth, transport, vault = given_oauth()
    transport.stub("POST", ATLASSIAN_REVOKE_URL, TransportResponse(status=200))

    assert await oauth.revoke(vault.encrypt_str("rt-old"))
    assert transport.calls[0].json_body["token"] == "rt-old"


@pytest.mark.asyncio
async def test_revoke_failures() -> None:
    oauth, transport, vault = given_oauth()
    transport.stub(
        "POST",
        ATLASSIAN_REVOKE_URL,
        TransportResponse(status=500),
        TransportError.unavailable("POST"),
    )

    assert not await oauth.revoke(vault.encrypt_str("rt-old"))
    assert not await oauth.revoke(vault.encrypt_str("rt-old"))
    assert not await oauth.revoke("not-a-stub-envelope")
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_revoke_undecryptable_token() -> None:
    transport = SvcTransportStub.initialize()
    oauth = AtlassianOAuth.initialize(transport, SvcVaultAes.initialize("unit-test-key"))

    assert not await oauth.revoke("é-not-base64")
    assert transport.calls == []
