import aiohttp
import json
import logging

from dataclasses import dataclass, field
from pydantic import BaseModel, Field
from typing import Any

from base.models.context import Service

from ticketing.config import TicketingConfig
from ticketing.models.exceptions import TicketingError, TransportError

logger = logging.getLogger(__name__)

SVC_TRANSPORT = "svc-transport"


class TransportFile(BaseModel, frozen=True):
    """
    A named binary part of a multipart request.
    """

    field_name: str
    filename: str
    content: bytes = Field(repr=False)
    mime_type: str


class TransportResponse(BaseModel, frozen=True):
    status: int
    body: bytes = Field(default=b"", repr=False)
    headers: dict[str, str] = Field(default_factory=dict)

    @staticmethod
    def from_json(data: Any, status: int = 200) -> "TransportResponse":
        return TransportResponse(
            status=status,
            body=json.dumps(data).encode(),
            headers={"content-type": "application/json"},
        )

    @staticmethod
    def empty(status: int = 204) -> "TransportResponse":
        return TransportResponse(status=status)

    def ok(self) -> bool:
        return 200 <= self.status < 300  # noqa: PLR2004

    def parse_json(self) -> Any:
        """
        Parse the body as JSON.  Raises `ValueError` when it is not valid.
        """
        return json.loads(self.body)


@dataclass(kw_only=True)
class SvcTransport(Service):
    """
    Outbound HTTP, isolated behind a service so that the connectors can be
    tested against scripted responses.
    """

    service_id: str = SVC_TRANSPORT

    @staticmethod
    def initialize() -> "SvcTransport":
        return SvcTransportApi.initialize()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any | None = None,
        form: dict[str, str] | None = None,
        files: list[TransportFile] | None = None,
    ) -> TransportResponse:
        """
        Send a request with at most one of the JSON, form-encoded or multipart
        bodies.  Returns the response whatever its status, or raises
        `TransportError` when none could be obtained.
        """
        raise NotImplementedError("Subclasses must implement SvcTransport.request")


##
## Stub
##


class TransportCall(BaseModel, frozen=True):
    method: str
    url: str
    headers: dict[str, str]
    json_body: Any | None = None
    form: dict[str, str] | None = None
    files: list[TransportFile] | None = None


@dataclass(kw_only=True)
class SvcTransportStub(SvcTransport):
    """
    Replays the responses scripted for each `(method, url)` in order, the last
    one being repeated, and records every call for later assertions.
    """

    stub_responses: dict[tuple[str, str], list[TransportResponse | TicketingError]]
    calls: list[TransportCall] = field(default_factory=list)

    @staticmethod
    def initialize(  # pyright: ignore[reportIncompatibleMethodOverride]
        stub_responses: (
            dict[tuple[str, str], TransportResponse | TicketingError] | None
        ) = None,
    ) -> "SvcTransportStub":
        return SvcTransportStub(
            stub_responses=(
                {key: [response] for key, response in stub_responses.items()}
                if stub_responses
                else {}
            ),
        )

    def stub(
        self,
        method: str,
        url: str,
        *responses: TransportResponse | TicketingError,
    ) -> None:
        self.stub_responses.setdefault((method, url), []).extend(responses)

    def calls_to(self, method: str, url: str) -> list[TransportCall]:
        return [c for c in self.calls if c.method == method and c.url == url]

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any | None = None,
        form: dict[str, str] | None = None,
        files: list[TransportFile] | None = None,
    ) -> TransportResponse:
        self.calls.append(
            TransportCall(
                method=method,
                url=url,
                headers=headers or {},
                json_body=json,
                form=form,
                files=files,
            )
        )

        queue = self.stub_responses.get((method, url))
        if not queue:
            raise TransportError.unavailable(method)

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response


##
## API
##


@dataclass(kw_only=True)
class SvcTransportApi(SvcTransport):
    timeout_seconds: float

    @staticmethod
    def initialize(  # pyright: ignore[reportIncompatibleMethodOverride]
        timeout_seconds: float | None = None,
    ) -> "SvcTransportApi":
        return SvcTransportApi(
            timeout_seconds=timeout_seconds or TicketingConfig.http.timeout_seconds,
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any | None = None,
        form: dict[str, str] | None = None,
        files: list[TransportFile] | None = None,
    ) -> TransportResponse:
        data: aiohttp.FormData | dict[str, str] | None = None
        if files:
            data = aiohttp.FormData()
            for file in files:
                data.add_field(
                    file.field_name,
                    file.content,
                    filename=file.filename,
                    content_type=file.mime_type,
                )
        elif form is not None:
            data = form

        if TicketingConfig.verbose >= 2:  # noqa: PLR2004
            logger.info("%s %s", method, _redact_url(url))

        try:
            async with (
                aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as session,
                session.request(
                    method,
                    url,
                    headers=headers or {},
                    json=json,
                    data=data,
                ) as response,
            ):
                resp_body = await response.read()
                resp_headers = {k.lower(): v for k, v in response.headers.items()}
                return TransportResponse(
                    status=response.status,
                    body=resp_body,
                    headers=resp_headers,
                )
        except (aiohttp.ClientError, TimeoutError) as exc:
            if TicketingConfig.verbose:
                logger.exception("%s %s failed", method, _redact_url(url))
            raise TransportError.unavailable(method) from exc


def _redact_url(url: str) -> str:
    return url.split("?", maxsplit=1)[0]
