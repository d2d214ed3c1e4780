"""In-memory credential cache with single-flight refresh."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Callable

    from azmigrate.core.models import Credential, CredentialKind, ResourceEndpoint
    from azmigrate.core.ports import SecretBackend


logger = logging.getLogger(__name__)

_CacheKey = tuple["ResourceEndpoint", "CredentialKind"]


class CachingCredentialProvider:
    """Resolves credentials from a SecretBackend and caches them in memory.

    A cached credential is reused until it is within ``refresh_margin`` of
    its expiry. Concurrent callers asking for the same endpoint and kind
    share one backend fetch: the first caller fetches, the rest wait on its
    future. A failed fetch is raised to every waiter and nothing is cached.
    Credentials are never written to disk.

    Example:
        >>> provider = CachingCredentialProvider(AzureSecretBackend())  # doctest: +SKIP
        >>> cred = provider.resolve(endpoint, endpoint.credential_kind)  # doctest: +SKIP
    """

    def __init__(
        self,
        backend: SecretBackend,
        refresh_margin: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._backend = backend
        self._refresh_margin = refresh_margin
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._cache: dict[_CacheKey, Credential] = {}
        self._in_flight: dict[_CacheKey, Future[Credential]] = {}

    def resolve(self, endpoint: ResourceEndpoint, kind: CredentialKind) -> Credential:
        """Return a non-expired credential, fetching it if needed.

        Raises:
            CredentialUnavailable: If the backend denies access or the
                secret does not exist.
        """
        key = (endpoint, kind)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None and not cached.is_expired(
                self._clock(), self._refresh_margin
            ):
                return cached
            pending = self._in_flight.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._in_flight[key] = pending
        assert pending is not None

        if not owner:
            logger.debug("Waiting for in-flight %s fetch for %s", kind, endpoint.name)
            return pending.result()

        logger.debug("Fetching %s for %s", kind, endpoint.name)
        try:
            credential = self._backend.fetch(endpoint, kind)
        except BaseException as e:
            with self._lock:
                self._cache.pop(key, None)
                del self._in_flight[key]
            pending.set_exception(e)
            raise

        with self._lock:
            self._cache[key] = credential
            del self._in_flight[key]
        pending.set_result(credential)
        return credential

    def invalidate(
        self, endpoint: ResourceEndpoint, kind: CredentialKind | None = None
    ) -> None:
        """Drop cached credentials for an endpoint (all kinds when kind is None)."""
        with self._lock:
            for key in list(self._cache):
                if key[0] == endpoint and (kind is None or key[1] == kind):
                    del self._cache[key]
