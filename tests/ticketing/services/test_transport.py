import pytest

from ticketing.config import TicketingConfig
from ticketing.models.exceptions import TransportError
from ticketing.services.transport import (
    SvcTransportApi,
    SvcTransportStub,
    TransportResponse,
)

URL = "https://acme.atlassian.net/rest/api/3/myself"


##
## TransportResponse
##


def test_transport_response_json() -> None:
    response = TransportResponse.from_json({"key": "SUPPORT-1"}, status=201)
    assert response.ok()
    assert response.parse_json() == {"key": "SUPPORT-1"}
    assert response.headers["content-type"] == "application/json"


def test_transport_response_status() -> None:
    assert TransportResponse.empty().ok()
    assert not TransportResponse(status=302).ok()
    assert not TransportResponse(status=404).ok()
    with pytest.raises(ValueError):
        TransportResponse(status=200, body=b"<html>").parse_json()


##
## SvcTransportStub
##


@pytest.mark.asyncio
async def test_transport_stub_replays_in_order() -> None:
    transport = SvcTransportStub.initialize()
    transport.stub(
        "GET",
        URL,
        TransportResponse(status=500),
        TransportResponse(status=200),
    )

    statuses = [(await transport.request("GET", URL)).status for _ in range(3)]
    assert statuses == [500, 200, 200]
    assert len(transport.calls_to("GET", URL)) == 3


@pytest.mark.asyncio
async def test_transport_stub_unknown_url() -> None:
    transport = SvcTransportStub.initialize({("GET", URL): TransportResponse.empty()})
    with pytest.raises(TransportError, match="POST request failed"):
        await transport.request("POST", URL)


##
## SvcTransportApi
##


def test_transport_api_timeout_default() -> None:
    assert SvcTransportApi.initialize().timeout_seconds == (
        TicketingConfig.http.timeout_seconds
    )
    assert SvcTransportApi.initialize(timeout_seconds=2.5).timeout_seconds == 2.5


@pytest.mark.asyncio
async def test_transport_api_connection_refused() -> None:
    transport = SvcTransportApi.initialize(timeout_seconds=2)
    with pytest.raises(TransportError, match="Service Unavailable: GET"):
        await transport.request("GET", "http://127.0.0.1:9/unreachable")
