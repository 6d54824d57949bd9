import base64
import binascii

BASIC_PREFIX = "Basic "
BEARER_PREFIX = "Bearer "


def authorization_basic_credentials(username: str, password: str) -> str:
    credentials = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return BASIC_PREFIX + credentials


def authorization_bearer(token: str) -> str:
    return BEARER_PREFIX + token


def parse_basic_credentials(value: str | None) -> tuple[str, str] | None:
    """
    Recover `(username, password)` from a Basic `Authorization` header, or
    None when the header is missing or malformed.
    """
    if not value or not value.startswith(BASIC_PREFIX):
        return None
    try:
        credentials = base64.b64decode(value.removeprefix(BASIC_PREFIX), validate=True)
        username, separator, password = credentials.decode().partition(":")
    except (binascii.Error, UnicodeDecodeError):
        return None
    return (username, password) if separator else None
