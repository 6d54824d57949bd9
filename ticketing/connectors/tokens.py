import asyncio
import logging

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC

from ticketing.config import TicketingConfig
from ticketing.connectors.oauth import AtlassianOAuth
from ticketing.models.exceptions import OAuthError, VaultError
from ticketing.models.oauth import StoredTokens, TokenSet
from ticketing.services.vault import SvcVault

logger = logging.getLogger(__name__)

REFRESH_MARGIN = timedelta(minutes=5)
"""
Tokens that expire within this margin are refreshed before use.
"""

OnRefreshed = Callable[[StoredTokens], Awaitable[None]]


def encrypt_token_set(
    vault: SvcVault,
    tenant_id: str,
    token_set: TokenSet,
    now: datetime | None = None,
) -> StoredTokens:
    """
    Encrypt a fresh token pair for storage by the caller.  Both tokens are
    replaced, since the refresh token is rotated on every use.
    """
    now = now or datetime.now(UTC)
    return StoredTokens(
        tenant_id=tenant_id,
        encrypted_access_token=vault.encrypt_str(token_set.access_token),
        encrypted_refresh_token=vault.encrypt_str(token_set.refresh_token),
        token_expiry=now + timedelta(seconds=token_set.expires_in),
    )


@dataclass(kw_only=True)
class TokenManager:
    """
    Hands out valid access tokens for OAuth tenants, refreshing them when they
    are about to expire.

    Refreshes are single-flight per tenant: concurrent callers await the same
    refresh, since Atlassian invalidates a refresh token after its first use.
    This only holds within one process (and one event loop); deployments with
    several processes must serialize refreshes per tenant themselves, or retry
    once against the updated tokens when a refresh fails.
    """

    oauth: AtlassianOAuth
    vault: SvcVault
    _inflight: dict[str, asyncio.Future[str | None]] = field(default_factory=dict)

    async def get_valid_access_token(
        self,
        stored: StoredTokens,
        on_refreshed: OnRefreshed,
        now: datetime | None = None,
    ) -> str | None:
        """
        Return the decrypted access token of the tenant, refreshed first when
        it expires within 5 minutes.  The refreshed tokens are passed, already
        encrypted, to `on_refreshed` so the caller can persist them.

        Returns None when the refresh fails.
        """
        now = now or datetime.now(UTC)
        if stored.token_expiry is None or stored.token_expiry > now + REFRESH_MARGIN:
            return self.vault.decrypt_str(stored.encrypted_access_token)

        if inflight := self._inflight.get(stored.tenant_id):
            return await asyncio.shield(inflight)

        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._inflight[stored.tenant_id] = future
        try:
            access_token = await self._refresh(stored, on_refreshed, now)
            future.set_result(access_token)
            return access_token
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Retrieved here, so that no warning is logged without followers.
            future.exception()
            raise
        finally:
            del self._inflight[stored.tenant_id]

    async def _refresh(
        self,
        stored: StoredTokens,
        on_refreshed: OnRefreshed,
        now: datetime,
    ) -> str | None:
        try:
            token_set = await self.oauth.refresh_access_token(
                stored.encrypted_refresh_token
            )
        except (OAuthError, VaultError):
            if TicketingConfig.verbose:
                logger.exception("Token refresh failed for tenant %s", stored.tenant_id)
            else:
                logger.warning("Token refresh failed for tenant %s", stored.tenant_id)
            return None

        await on_refreshed(
            encrypt_token_set(self.vault, stored.tenant_id, token_set, now)
        )
        logger.info("Refreshed tokens for tenant %s", stored.tenant_id)
        return token_set.access_token
