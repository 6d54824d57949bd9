from datetime import datetime, UTC
from pydantic import BaseModel, Field, field_validator

from base.strings.atlassian import CloudId


class TokenSet(BaseModel, frozen=True):
    """
    A token pair returned by the Atlassian token endpoint.

    NOTE: Atlassian rotates the refresh token on every use, so a `TokenSet`
    obtained by a refresh must fully replace the one that was stored.
    """

    access_token: str = Field(repr=False)
    refresh_token: str = Field(repr=False)
    expires_in: int
    scope: str = ""


class AtlassianSite(BaseModel, frozen=True, populate_by_name=True):
    """
    A site that the user granted access to, from the accessible resources
    endpoint.  Its `id` routes every subsequent OAuth-mode API call.
    """

    id: CloudId
    url: str
    name: str
    scopes: list[str] = Field(default_factory=list)
    avatar_url: str | None = Field(default=None, alias="avatarUrl")


class StoredTokens(BaseModel, frozen=True):
    """
    The tokens of a tenant as persisted by the caller, encrypted with the
    `SvcVault`.  This layer never stores them itself.
    """

    tenant_id: str
    encrypted_access_token: str = Field(repr=False)
    encrypted_refresh_token: str = Field(repr=False)
    token_expiry: datetime | None = None
    """
    When stored without an offset (e.g., "timestamp without time zone"), the
    expiry is read as UTC.
    """

    @field_validator("token_expiry")
    @classmethod
    def validate_token_expiry(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
