"""Shared fakes for the sign-in tests"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from signin.capability.cache import BASIC_AUTH_REMOVAL_DATE, CapabilityCache
from signin.core.types import Account, ServerMetadata
from signin.store.sign_in_store import SignInStore

HOSTED = "https://api.github.com"
AFTER_REMOVAL = BASIC_AUTH_REMOVAL_DATE + timedelta(days=30)
BEFORE_REMOVAL = BASIC_AUTH_REMOVAL_DATE - timedelta(days=30)


async def settle() -> None:
    """Let pending tasks run until they block on their next await"""
    for _ in range(10):
        await asyncio.sleep(0)


class FakeAuthorizationService:
    def __init__(self) -> None:
        self.outcomes: list = []
        self.authorization_calls: list[tuple] = []
        self.authorization_gate: asyncio.Event | None = None
        self.user = Account(login="octocat", endpoint=HOSTED, token="unset", id=1)
        self.user_error: Exception | None = None
        self.user_calls: list[tuple[str, str]] = []
        self.metadata: dict[str, object] = {}
        self.metadata_calls: list[str] = []
        self.metadata_gate: asyncio.Event | None = None

    async def create_authorization(self, endpoint, username, password, otp):
        self.authorization_calls.append((endpoint, username, password, otp))
        if self.authorization_gate is not None:
            await self.authorization_gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def fetch_user(self, endpoint, token):
        self.user_calls.append((endpoint, token))
        if self.user_error is not None:
            raise self.user_error
        return replace(self.user, endpoint=endpoint, token=token)

    async def fetch_metadata(self, endpoint):
        self.metadata_calls.append(endpoint)
        if self.metadata_gate is not None:
            await self.metadata_gate.wait()
        value = self.metadata.get(endpoint)
        if isinstance(value, Exception):
            raise value
        return value


class FakeOAuthDelegate:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.result: asyncio.Future | None = None

    async def authenticate_via_browser(self, endpoint):
        self.calls.append(endpoint)
        if self.result is None:
            self.result = asyncio.get_running_loop().create_future()
        return await self.result


def supports(flag: bool) -> ServerMetadata:
    return ServerMetadata(verifiable_password_authentication=flag)


@pytest.fixture()
def service() -> FakeAuthorizationService:
    return FakeAuthorizationService()


@pytest.fixture()
def oauth() -> FakeOAuthDelegate:
    return FakeOAuthDelegate()


@pytest.fixture()
def cache(service: FakeAuthorizationService) -> CapabilityCache:
    return CapabilityCache(service, HOSTED, now=lambda: AFTER_REMOVAL)


@pytest.fixture()
def store(service, oauth, cache) -> SignInStore:
    return SignInStore(service, oauth, capability_cache=cache)


class Recorder:
    """Collects everything the store publishes"""

    def __init__(self, store: SignInStore) -> None:
        self.states: list = []
        self.authenticated: list = []
        self.errors: list[Exception] = []
        self._store = store
        store.on_did_update(self.states.append)
        store.on_did_authenticate(self._on_authenticate)
        store.on_did_error(self.errors.append)

    def _on_authenticate(self, account, method) -> None:
        self.authenticated.append((account, method, self._store.get_state()))


@pytest.fixture()
def recorder(store: SignInStore) -> Recorder:
    return Recorder(store)
