import pytest

from ticketing.connectors.credentials import JiraBasicConfig, resolve_connection
from ticketing.domain.attachments import fetch_attachment, is_trusted_attachment_host
from ticketing.services.transport import SvcTransportStub, TransportResponse

from tests.ticketing.utils_jira import BASIC_CONFIG, given_client

CONTENT_URL = "https://acme.atlassian.net/rest/api/3/attachment/content/10001"


##
## is_trusted_attachment_host
##


@pytest.mark.parametrize(
    "url",
    [
        CONTENT_URL,
        "https://api.atlassian.com/ex/jira/abc/rest/api/3/attachment/content/1",
        "https://acme.jira.com/secure/attachment/1/file.png",
        "https://api.media.atl-paas.net/file/abc/binary",
    ],
)
def test_is_trusted_attachment_host_allowed(url: str) -> None:
    assert is_trusted_attachment_host(url)


@pytest.mark.parametrize(
    "url",
    [
        "https://evil.com/attachment/1",
        "https://atlassian.net.evil.com/attachment/1",
        "https://evilatlassian.net/attachment/1",
        "https://acme.atlassian.net@evil.com/attachment/1",
        "file://acme.atlassian.net/etc/passwd",
        "http://acme.atlassian.net/rest/api/3/attachment/content/10001",
        "not a url",
        "https://[::1/broken",
    ],
)
def test_is_trusted_attachment_host_blocked(url: str) -> None:
    assert not is_trusted_attachment_host(url)


##
## fetch_attachment
##


@pytest.mark.asyncio
async def test_fetch_attachment_untrusted_no_network() -> None:
    transport = SvcTransportStub.initialize()
    outcome = await fetch_attachment(
        resolve_connection(BASIC_CONFIG),
        transport,
        "https://evil.com/steal",
    )
    assert outcome.failure
    assert outcome.failure.kind == "untrusted_host"
    assert "evil.com" in outcome.failure.message
    assert transport.calls == []


@pytest.mark.asyncio
async def test_fetch_attachment_not_configured() -> None:
    transport = SvcTransportStub.initialize()
    outcome = await fetch_attachment(
        resolve_connection(JiraBasicConfig()),
        transport,
        CONTENT_URL,
    )
    assert outcome.failure
    assert outcome.failure.kind == "not_configured"
    assert transport.calls == []


@pytest.mark.asyncio
async def test_download_attachment() -> None:
    client, transport = given_client()
    transport.stub("GET", CONTENT_URL, TransportResponse(status=200, body=b"data"))

    outcome = await client.download_attachment(CONTENT_URL)
    assert outcome.value == b"data"
    assert transport.calls[0].headers["Authorization"].startswith("Basic ")
