"""GitHub REST API authorization client"""

import logging
import socket
import uuid
from typing import Any

import httpx

from ..config import SignInSettings
from ..core.exceptions import ApiError, ApiTransportError, HostNotFoundError
from ..core.types import (
    Account,
    AuthenticationMode,
    AuthorizationOutcome,
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

logger = logging.getLogger(__name__)

PERSONAL_ACCESS_TOKEN_MESSAGE = (
    "This API can only be accessed with username and password Basic Auth"
)
INVALID_CLIENT_MESSAGE = "Invalid OAuth application client_id or secret."
OTP_HEADER = "X-GitHub-OTP"
NAME_RESOLUTION_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def _is_name_resolution_failure(error: BaseException) -> bool:
    """Walk the exception chain looking for a DNS lookup failure"""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        message = str(current).lower()
        if any(hint in message for hint in NAME_RESOLUTION_HINTS):
            return True
        current = current.__cause__ or current.__context__
    return False


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _parse_otp_header(value: str | None) -> AuthenticationMode | None:
    """Parse 'required; app' style X-GitHub-OTP values"""
    if not value:
        return None
    pieces = value.split(";")
    if len(pieces) != 2:
        return None
    try:
        return AuthenticationMode(pieces[1].strip().lower())
    except ValueError:
        return None


class GitHubAuthorizationService:
    """Authorization service backed by the GitHub (Enterprise) REST API"""

    def __init__(
        self,
        settings: SignInSettings,
        client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)
        self._headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": settings.user_agent,
        }

    async def __aenter__(self) -> "GitHubAuthorizationService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            return await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            if isinstance(e, httpx.ConnectError) and _is_name_resolution_failure(e):
                host = httpx.URL(url).host
                logger.error(f"[GitHub API] Could not resolve {host}: {e}")
                raise HostNotFoundError(url, host) from e
            logger.error(f"[GitHub API] {method} {url} failed: {e}")
            raise ApiTransportError(url, str(e) or type(e).__name__) from e

    async def create_authorization(
        self, endpoint: str, username: str, password: str, otp: str | None
    ) -> AuthorizationOutcome:
        """Create an OAuth authorization using basic auth credentials"""
        url = f"{endpoint}/authorizations"
        headers = {OTP_HEADER: otp} if otp else {}
        payload = {
            "scopes": list(self._settings.oauth_scopes),
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "note": self._settings.note,
            "note_url": self._settings.note_url,
            "fingerprint": uuid.uuid4().hex,
        }

        response = await self._request(
            "POST", url, json=payload, headers=headers, auth=(username, password)
        )
        logger.info(
            f"[GitHub authorization] {endpoint} answered {response.status_code}"
        )
        return self._to_outcome(response)

    def _to_outcome(self, response: httpx.Response) -> AuthorizationOutcome:
        status = response.status_code
        data = _json_or_none(response)

        if response.is_success:
            token = data.get("token") if isinstance(data, dict) else None
            if isinstance(token, str) and token:
                return Authorized(token=token)
            logger.error("[GitHub authorization] Response is missing a token")
            return ServiceError(status=status, status_text=response.reason_phrase)

        if status == 401:
            mode = _parse_otp_header(response.headers.get(OTP_HEADER))
            if mode is not None:
                return TwoFactorRequired(mode=mode)
            return Failed()

        message = data.get("message") if isinstance(data, dict) else None

        if status == 403 and message == PERSONAL_ACCESS_TOKEN_MESSAGE:
            return PersonalAccessTokenBlocked()

        if status == 410:
            return WebFlowRequired()

        if status == 422 and isinstance(data, dict):
            for error in data.get("errors") or []:
                if not isinstance(error, dict):
                    continue
                resource = str(error.get("resource", "")).lower()
                field_name = str(error.get("field", "")).lower()
                if resource == "oauthaccess" and field_name == "user":
                    return UserRequiresVerification()
            if message == INVALID_CLIENT_MESSAGE:
                return EnterpriseTooOld()

        logger.warning(
            f"[GitHub authorization] Unexpected response {status}: {response.text[:500]}"
        )
        return ServiceError(status=status, status_text=response.reason_phrase)

    async def fetch_user(self, endpoint: str, token: str) -> Account:
        """Fetch the profile of the user the token belongs to"""
        headers = {"Authorization": f"token {token}"}
        response = await self._request("GET", f"{endpoint}/user", headers=headers)
        if not response.is_success:
            raise ApiError(
                status_code=response.status_code,
                detail=f"Unable to fetch user: {response.text[:500]}",
            )

        data = _json_or_none(response)
        if not isinstance(data, dict) or not data.get("login"):
            raise ApiError(
                status_code=response.status_code,
                detail="Unable to fetch user: invalid response format",
            )

        emails = await self._fetch_emails(endpoint, headers)
        return Account(
            login=data["login"],
            endpoint=endpoint,
            token=token,
            id=data.get("id"),
            name=data.get("name"),
            emails=emails,
            avatar_url=data.get("avatar_url"),
        )

    async def _fetch_emails(
        self, endpoint: str, headers: dict[str, str]
    ) -> tuple[str, ...]:
        response = await self._request(
            "GET", f"{endpoint}/user/emails", headers=headers
        )
        if not response.is_success:
            # Tokens without the user:email scope get a 404 here
            logger.warning(
                f"[GitHub API] Unable to fetch emails ({response.status_code})"
            )
            return ()

        data = _json_or_none(response)
        if not isinstance(data, list):
            return ()
        return tuple(
            entry["email"]
            for entry in data
            if isinstance(entry, dict) and isinstance(entry.get("email"), str)
        )

    async def fetch_metadata(self, endpoint: str) -> ServerMetadata | None:
        """Fetch /meta and report whether password authentication is allowed"""
        response = await self._request("GET", f"{endpoint}/meta")
        if not response.is_success:
            logger.warning(
                f"[GitHub API] Unable to load metadata from {endpoint} ({response.status_code})"
            )
            return None

        data = _json_or_none(response)
        flag = (
            data.get("verifiable_password_authentication")
            if isinstance(data, dict)
            else None
        )
        if not isinstance(flag, bool):
            logger.warning(f"[GitHub API] {endpoint}/meta does not report password auth")
            return None
        return ServerMetadata(verifiable_password_authentication=flag)
