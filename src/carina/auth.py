"""Authentication with an optional token cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

from carina.core.exceptions import AuthError
from carina.utils.logging import get_logger

if TYPE_CHECKING:
    from carina.cache.token_cache import TokenCache
    from carina.interfaces.cluster_provider import ClusterProvider
    from carina.interfaces.cluster_types import Account, Session

logger = get_logger(__name__)


def authenticate(
    adapter: ClusterProvider,
    account: Account,
    cache: TokenCache | None = None,
) -> Session:
    """Get a session, reusing a cached token when it still works.

    A cached token is only accepted when the adapter's probe succeeds. A
    rejected token is replaced by a full authentication, and the new token
    overwrites the cache entry. Without a cache every call authenticates.

    Args:
        adapter: Backend adapter
        account: Resolved account
        cache: Token cache, or None when caching is disabled

    Returns:
        Authenticated session

    Raises:
        AuthError: If fresh authentication fails
    """
    if cache is None:
        return adapter.authenticate(account)

    token = cache.lookup(account.username)
    if token:
        try:
            session = adapter.resume_session(account, token)
            logger.debug("cached_token_accepted", username=account.username)
            return session
        except AuthError as e:
            logger.info("cached_token_rejected", username=account.username, reason=str(e))

    session = adapter.authenticate(account)
    cache.store(account.username, session.token)
    return session
