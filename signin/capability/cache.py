"""Memoized probe for password authentication support per endpoint"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from ..api.base import AuthorizationService
from ..core.events import Disposable, Emitter
from ..core.exceptions import (
    ApiTransportError,
    EnterpriseUnreachableError,
    HostNotFoundError,
)
from ..core.types import ServerMetadata

logger = logging.getLogger(__name__)

# Maximum time to wait for a /meta call, in seconds
METADATA_TIMEOUT = 2.0

# GitHub.com removed username and password authentication on this date.
# See https://developer.github.com/changes/2020-02-14-deprecating-oauth-auth-endpoint/
BASIC_AUTH_REMOVAL_DATE = datetime(2020, 11, 13, 16, 0, tzinfo=timezone.utc)

MINIMUM_ENTERPRISE_VERSION = "2.8.0"

HOSTED_UPDATED_EVENT = "hosted-supports-basic-auth-updated"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_before_basic_auth_removal(now: datetime) -> bool:
    """Whether the given moment lies strictly before the removal deadline"""
    return now < BASIC_AUTH_REMOVAL_DATE


class CapabilityCache:
    """Tracks which endpoints still accept username and password"""

    def __init__(
        self,
        service: AuthorizationService,
        hosted_endpoint: str,
        now: Callable[[], datetime] = _utc_now,
        timeout: float = METADATA_TIMEOUT,
    ):
        self._service = service
        self._hosted_endpoint = hosted_endpoint
        self._now = now
        self._timeout = timeout
        self._supports_basic_auth: dict[str, bool] = {}
        self._emitter = Emitter()

    @property
    def hosted_endpoint(self) -> str:
        return self._hosted_endpoint

    def has_cached(self, endpoint: str) -> bool:
        return endpoint in self._supports_basic_auth

    def on_hosted_updated(self, fn: Callable[[bool], None]) -> Disposable:
        """
        Fired whenever the hosted endpoint is re-evaluated. May fire without
        the value having changed.
        """
        return self._emitter.on(HOSTED_UPDATED_EVENT, fn)

    def _heuristic(self) -> bool:
        return is_before_basic_auth_removal(self._now())

    def try_read(self, endpoint: str) -> bool:
        """
        Cached value for the endpoint, or the deadline heuristic when the
        endpoint has not been probed yet. Never touches the network.
        """
        cached = self._supports_basic_auth.get(endpoint)
        return self._heuristic() if cached is None else cached

    async def probe(self, endpoint: str) -> bool:
        """Ask the endpoint whether it supports basic auth, bounded by a timeout"""
        cached = self._supports_basic_auth.get(endpoint)
        fallback = (
            None
            if cached is None
            else ServerMetadata(verifiable_password_authentication=cached)
        )

        try:
            metadata = await asyncio.wait_for(
                self._service.fetch_metadata(endpoint), self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[CapabilityCache] {endpoint}/meta timed out after {self._timeout}s"
            )
            metadata = fallback
        except HostNotFoundError:
            raise
        except ApiTransportError as e:
            logger.warning(f"[CapabilityCache] {endpoint}/meta unreachable: {e}")
            metadata = fallback

        if metadata is not None:
            supports_basic_auth = metadata.verifiable_password_authentication is True
            self._supports_basic_auth[endpoint] = supports_basic_auth
            logger.debug(
                f"[CapabilityCache] {endpoint} supports basic auth: {supports_basic_auth}"
            )
            if endpoint == self._hosted_endpoint:
                self._emitter.emit(HOSTED_UPDATED_EVENT, supports_basic_auth)
            return supports_basic_auth

        if endpoint == self._hosted_endpoint:
            supports_basic_auth = self._heuristic()
            logger.info(
                f"[CapabilityCache] Probe unusable, assuming basic auth support: {supports_basic_auth}"
            )
            self._emitter.emit(HOSTED_UPDATED_EVENT, supports_basic_auth)
            return supports_basic_auth

        raise EnterpriseUnreachableError(endpoint, MINIMUM_ENTERPRISE_VERSION)
