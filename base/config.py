import dotenv
import logging
import os

from typing import Any, Literal

logger = logging.getLogger(__name__)

dotenv.load_dotenv(override=True)


TEST_INTEGRATION = bool(os.getenv("TEST_INTEGRATION"))
"""
Run the tests that talk to the live Atlassian site of the `.env` file.

- In Bash: TEST_INTEGRATION=true pytest
- In Powershell: $env:TEST_INTEGRATION=true; pytest
"""

LogFormat = Literal["json", "text"]


def _parse_verbose(value: str | None) -> int:
    try:
        return max(0, min(2, int(value or "0")))
    except ValueError:
        return 0


def _parse_log_format(value: str | None) -> LogFormat | None:
    match value:
        case "json" | "text":
            return value
        case _:
            return None


class BaseConfig:
    # Deployment
    environment = os.getenv("ENVIRONMENT", "local")
    version = os.getenv("VERSION", "development")

    # Logging
    verbose = _parse_verbose(os.getenv("DEBUG_VERBOSE"))
    """
    - When empty or 0, verbose logs are disabled.
    - When 1, enable debugging logs and stacktraces of recovered failures.
    - When 2, also log the method and URL (without query) of every request.
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    log_format = _parse_log_format(os.getenv("LOG_FORMAT"))
    """
    Overrides the format of the logs, which defaults to JSON in Kubernetes and
    to colored text elsewhere.
    """

    extra: dict[str, str] = {}

    @classmethod
    def is_kubernetes(cls) -> bool:
        return cls.environment in ("prod", "test", "dev")

    @classmethod
    def logs_as_json(cls) -> bool:
        if cls.log_format:
            return cls.log_format == "json"
        return cls.is_kubernetes()

    @classmethod
    def get(cls, key: Any) -> str:
        """
        Read (and cache) an environment variable without a dedicated setting,
        e.g., the credentials of the integration tests.
        """
        if not key or not isinstance(key, str):
            return ""
        if key not in cls.extra:
            cls.extra[key] = os.getenv(key, "")
        return cls.extra[key]
