"""Tests for the httpx backed GitHub authorization service."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from signin.api.github import GitHubAuthorizationService
from signin.config import SignInSettings
from signin.core.exceptions import ApiError, ApiTransportError, HostNotFoundError
from signin.core.types import (
    AuthenticationMode,
    Authorized,
    EnterpriseTooOld,
    Failed,
    PersonalAccessTokenBlocked,
    ServerMetadata,
    ServiceError,
    TwoFactorRequired,
    UserRequiresVerification,
    WebFlowRequired,
)

ENDPOINT = "https://api.github.com"


def make_service(handler) -> GitHubAuthorizationService:
    settings = SignInSettings(
        hosted_api_endpoint=ENDPOINT,
        client_id="client",
        client_secret="secret",
        user_agent="signin-tests",
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GitHubAuthorizationService(settings, client=client)


def respond(status: int, payload=None, headers=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=payload, headers=headers)

    return handler


@pytest.mark.asyncio()
async def test_create_authorization_sends_credentials_and_otp() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"token": "gho_abc"})

    async with make_service(handler) as service:
        outcome = await service.create_authorization(ENDPOINT, "octocat", "hunter2", "123456")

    assert outcome == Authorized(token="gho_abc")
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == f"{ENDPOINT}/authorizations"
    expected = base64.b64encode(b"octocat:hunter2").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["X-GitHub-OTP"] == "123456"
    assert request.headers["User-Agent"] == "signin-tests"
    body = json.loads(request.content)
    assert body["client_id"] == "client"
    assert body["scopes"] == ["repo", "user", "workflow"]
    assert body["fingerprint"]


@pytest.mark.asyncio()
async def test_create_authorization_omits_otp_header_without_code() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(401)

    async with make_service(handler) as service:
        await service.create_authorization(ENDPOINT, "octocat", "hunter2", None)

    assert "X-GitHub-OTP" not in seen[0].headers


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    ("status", "payload", "headers", "expected"),
    [
        (401, None, {"X-GitHub-OTP": "required; app"}, TwoFactorRequired(AuthenticationMode.APP)),
        (401, None, {"X-GitHub-OTP": "required; sms"}, TwoFactorRequired(AuthenticationMode.SMS)),
        (401, None, {"X-GitHub-OTP": "required; pigeon"}, Failed()),
        (401, {"message": "Bad credentials"}, None, Failed()),
        (
            403,
            {"message": "This API can only be accessed with username and password Basic Auth"},
            None,
            PersonalAccessTokenBlocked(),
        ),
        (403, {"message": "Maximum number of login attempts exceeded"}, None, ServiceError(403, "Forbidden")),
        (410, {"message": "Gone"}, None, WebFlowRequired()),
        (
            422,
            {"message": "Validation Failed", "errors": [{"resource": "OauthAccess", "field": "user", "code": "unverified_user_email"}]},
            None,
            UserRequiresVerification(),
        ),
        (422, {"message": "Invalid OAuth application client_id or secret."}, None, EnterpriseTooOld()),
        (500, None, None, ServiceError(500, "Internal Server Error")),
        (201, {"token": ""}, None, ServiceError(201, "Created")),
    ],
)
async def test_authorization_response_mapping(status, payload, headers, expected) -> None:
    async with make_service(respond(status, payload, headers)) as service:
        outcome = await service.create_authorization(ENDPOINT, "octocat", "hunter2", None)

    assert outcome == expected


@pytest.mark.asyncio()
async def test_name_resolution_failure_raises_host_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

    async with make_service(handler) as service:
        with pytest.raises(HostNotFoundError) as info:
            await service.fetch_metadata("https://ghe.invalid/api/v3")

    assert info.value.host == "ghe.invalid"


@pytest.mark.asyncio()
async def test_other_transport_failures_raise_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    async with make_service(handler) as service:
        with pytest.raises(ApiTransportError) as info:
            await service.create_authorization(ENDPOINT, "octocat", "hunter2", None)

    assert not isinstance(info.value, HostNotFoundError)
    assert isinstance(info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio()
async def test_fetch_user_builds_account() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path == "/user":
            return httpx.Response(
                200,
                json={"login": "octocat", "id": 1, "name": "The Octocat", "avatar_url": "https://a/1"},
            )
        return httpx.Response(200, json=[{"email": "octocat@github.com"}, {"primary": True}])

    async with make_service(handler) as service:
        account = await service.fetch_user(ENDPOINT, "gho_abc")

    assert account.login == "octocat"
    assert account.endpoint == ENDPOINT
    assert account.token == "gho_abc"
    assert account.name == "The Octocat"
    assert account.emails == ("octocat@github.com",)
    assert seen[0].headers["Authorization"] == "token gho_abc"
    assert "gho_abc" not in repr(account)


@pytest.mark.asyncio()
async def test_fetch_user_tolerates_missing_email_scope() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": "octocat"})
        return httpx.Response(404, json={"message": "Not Found"})

    async with make_service(handler) as service:
        account = await service.fetch_user(ENDPOINT, "gho_abc")

    assert account.emails == ()


@pytest.mark.asyncio()
async def test_fetch_user_rejects_bad_token() -> None:
    async with make_service(respond(401, {"message": "Bad credentials"})) as service:
        with pytest.raises(ApiError) as info:
            await service.fetch_user(ENDPOINT, "gho_abc")

    assert info.value.status_code == 401


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    ("status", "payload", "expected"),
    [
        (200, {"verifiable_password_authentication": True}, ServerMetadata(True)),
        (200, {"verifiable_password_authentication": False}, ServerMetadata(False)),
        (200, {"hooks": []}, None),
        (404, {"message": "Not Found"}, None),
    ],
)
async def test_fetch_metadata(status, payload, expected) -> None:
    async with make_service(respond(status, payload)) as service:
        metadata = await service.fetch_metadata(ENDPOINT)

    assert metadata == expected
