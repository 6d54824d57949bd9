import pytest

from base.config import BaseConfig

from ticketing.config import TicketingConfig


@pytest.fixture(autouse=True)
def setup_function(monkeypatch: pytest.MonkeyPatch):
    BaseConfig.environment = "local"
    BaseConfig.verbose = 0

    # Ignore the operator credentials of the local `.env` file.
    for name in (
        "domain",
        "account_email",
        "api_token",
        "service_desk_id",
        "request_type_id",
        "project_key",
    ):
        monkeypatch.setattr(TicketingConfig.atlassian, name, "")

    monkeypatch.setattr(TicketingConfig.oauth, "client_id", "test-client-id")
    monkeypatch.setattr(TicketingConfig.oauth, "client_secret", "test-client-secret")
