import logging

from urllib.parse import urlparse

from ticketing.connectors.credentials import JiraConnection
from ticketing.connectors.executor import JiraExecutor
from ticketing.models.exceptions import JiraFailure
from ticketing.models.outcome import JiraOutcome
from ticketing.services.transport import SvcTransport

logger = logging.getLogger(__name__)

TRUSTED_ATTACHMENT_HOST_SUFFIXES = (
    ".atlassian.net",
    ".atlassian.com",
    ".jira.com",
    ".atl-paas.net",
)
"""
The domains that Atlassian serves attachment content from.  Any other host is
refused before the Authorization header could be sent to it.
"""

TRUSTED_ATTACHMENT_SCHEMES = ("https",)
"""
Plain http would send the Authorization header unencrypted.
"""


def is_trusted_attachment_host(url: str) -> bool:
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return False

    if parsed.scheme not in TRUSTED_ATTACHMENT_SCHEMES or not hostname:
        return False
    return hostname.endswith(TRUSTED_ATTACHMENT_HOST_SUFFIXES)


async def fetch_attachment(
    connection: JiraConnection,
    transport: SvcTransport,
    url: str,
) -> JiraOutcome[bytes]:
    """
    Download the content of an attachment, given the URL returned by Jira.
    The host is checked against the allow-list before any request is made.
    """
    if not connection.is_available():
        return JiraOutcome.fail(JiraFailure.not_configured())

    if not is_trusted_attachment_host(url):
        hostname = _try_hostname(url)
        logger.warning(
            "Blocked attachment download from untrusted host: %s", hostname
        )
        return JiraOutcome.fail(JiraFailure.untrusted_host(hostname))

    executor = JiraExecutor(connection=connection, transport=transport)
    return await executor.execute_bytes(url)


def _try_hostname(url: str) -> str:
    try:
        return urlparse(url).hostname or "<none>"
    except ValueError:
        return "<invalid>"
