"""Sign-in flow state store"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Coroutine

from ..api.base import AuthorizationService
from ..api.endpoints import (
    get_enterprise_api_url,
    get_forgot_password_url,
    get_hosted_api_endpoint,
)
from ..capability.cache import CapabilityCache
from ..core.events import Disposable, Emitter
from ..core.exceptions import (
    EndpointValidationError,
    HostNotFoundError,
    InvalidProtocolError,
    InvalidSignInStepError,
    InvalidURLError,
    SignInError,
    UnexpectedOutcomeError,
)
from ..core.types import (
    Account,
    AuthenticationState,
    AuthorizationOutcome,
    Authorized,
    EndpointEntryState,
    EnterpriseTooOld,
    Failed,
    FlowState,
    PersonalAccessTokenBlocked,
    ServiceError,
    SignInMethod,
    SignInStep,
    SuccessState,
    TwoFactorAuthenticationState,
    TwoFactorRequired,
    UserRequiresVerification,
    WebFlowRequired,
)
from ..oauth.base import OAuthDelegate
from ..validation.url import validate_url

logger = logging.getLogger(__name__)

DID_UPDATE = "did-update"
DID_AUTHENTICATE = "did-authenticate"
DID_ERROR = "did-error"

INVALID_URL_MESSAGE = (
    "The GitHub Enterprise Server instance address doesn't appear to be a valid "
    "URL. We're expecting something like https://github.example.com."
)
INVALID_PROTOCOL_MESSAGE = (
    "Unsupported protocol. Only http or https is supported when authenticating "
    "with GitHub Enterprise Server instances."
)
HOST_NOT_FOUND_MESSAGE = (
    "The server could not be found. Please verify that the URL is correct and "
    "that you have a stable internet connection."
)
PERSONAL_ACCESS_TOKEN_MESSAGE = (
    "A personal access token cannot be used to sign in. Please sign in with "
    "your password or through the browser."
)
ENTERPRISE_TOO_OLD_MESSAGE = (
    "The GitHub Enterprise Server version is not supported. Talk to your "
    "server's administrator about upgrading to the latest version of GitHub "
    "Enterprise Server."
)
TWO_FACTOR_FAILED_MESSAGE = "Two-factor authentication failed."


def _unverified_user_message(login: str) -> str:
    return (
        f"Unable to authenticate. The account {login} is lacking a verified email "
        "address. Please sign in to GitHub.com, confirm your email address in the "
        "Emails section under Personal settings, and try again."
    )


def _incorrect_credentials_message(username: str) -> str:
    if "@" in username:
        return "Incorrect email or password."
    return "Incorrect username or password."


class SignInStore:
    """
    Drives a single sign-in flow against GitHub.com or a GitHub Enterprise
    Server instance.

    Every step-advancing coroutine checks the current step, publishes a
    loading copy of the state and then awaits the network. Results arriving
    after the flow was reset, restarted or advanced by another call are
    dropped without touching the state.
    """

    def __init__(
        self,
        service: AuthorizationService,
        oauth_delegate: OAuthDelegate,
        capability_cache: CapabilityCache | None = None,
        hosted_endpoint: str | None = None,
        url_validator: Callable[[str], str] = validate_url,
    ):
        if hosted_endpoint is None:
            hosted_endpoint = (
                capability_cache.hosted_endpoint
                if capability_cache is not None
                else get_hosted_api_endpoint()
            )

        self._service = service
        self._oauth_delegate = oauth_delegate
        self._hosted_endpoint = hosted_endpoint
        self._capabilities = capability_cache or CapabilityCache(
            service, hosted_endpoint
        )
        self._validate_url = url_validator
        self._emitter = Emitter()
        self._state: FlowState | None = None
        # Bumped when a flow begins or is reset
        self._generation = 0
        # Bumped whenever ownership of the flow changes hands: begin, reset
        # and the start of every step-advancing call
        self._attempt = 0
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def hosted_endpoint(self) -> str:
        return self._hosted_endpoint

    # Subscriptions

    def on_did_update(self, fn: Callable[[FlowState | None], None]) -> Disposable:
        """Invoked after every state write with the new state"""
        return self._emitter.on(DID_UPDATE, fn)

    def on_did_authenticate(
        self, fn: Callable[[Account, SignInMethod], None]
    ) -> Disposable:
        """Invoked once a user has successfully completed a sign-in flow"""
        return self._emitter.on(DID_AUTHENTICATE, fn)

    def on_did_error(self, fn: Callable[[Exception], None]) -> Disposable:
        """Invoked for failures the flow cannot present in the current step"""
        return self._emitter.on(DID_ERROR, fn)

    def on_hosted_supports_basic_auth_updated(
        self, fn: Callable[[bool], None]
    ) -> Disposable:
        """
        Invoked whenever the store re-evaluates whether the hosted endpoint
        supports username and password. May fire without a change in value.
        """
        if not self._capabilities.has_cached(self._hosted_endpoint):
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("[SignInStore] No running loop, skipping capability probe")
            else:
                self._spawn(self._probe_logging_errors(self._hosted_endpoint))

        return self._capabilities.on_hosted_updated(fn)

    def try_get_hosted_supports_basic_auth(self) -> bool:
        """Best guess, without network access, at hosted basic auth support"""
        return self._capabilities.try_read(self._hosted_endpoint)

    # State

    def get_state(self) -> FlowState | None:
        """Current state, or None when no sign-in flow is in progress"""
        return self._state

    def _set_state(self, state: FlowState | None) -> None:
        self._state = state
        self._emitter.emit(DID_UPDATE, state)

    def _emit_authenticate(self, account: Account, method: SignInMethod) -> None:
        logger.info(f"[SignInStore] Signed in as {account.login} ({method.value})")
        self._emitter.emit(DID_AUTHENTICATE, account, method)

    def _emit_error(self, error: Exception) -> None:
        logger.error(f"[SignInStore] {error}")
        self._emitter.emit(DID_ERROR, error)

    def _require_step(self, step: SignInStep, operation: str) -> Any:
        current = self._state
        if current is None or current.kind is not step:
            raise InvalidSignInStepError(
                current.kind if current is not None else None, operation
            )
        return current

    def _start_attempt(self, state: Any) -> int:
        self._attempt += 1
        self._set_state(replace(state, loading=True))
        return self._attempt

    def _is_live(self, attempt: int, step: SignInStep) -> bool:
        """Whether a continuation started as `attempt` may still write state"""
        current = self._state
        return (
            attempt == self._attempt
            and current is not None
            and current.kind is step
        )

    def _fail_in_state(self, error: Exception) -> None:
        self._set_state(replace(self._state, loading=False, error=error))

    def _stop_loading(self) -> None:
        self._set_state(replace(self._state, loading=False))

    def _new_flow(self) -> int:
        self._generation += 1
        self._attempt += 1
        return self._generation

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _probe_logging_errors(self, endpoint: str) -> bool | None:
        try:
            return await self._capabilities.probe(endpoint)
        except Exception as e:
            logger.error(
                f"[SignInStore] Failed resolving whether {endpoint} supports password authentication: {e}",
                exc_info=True,
            )
            return None

    # Flow control

    def reset(self) -> None:
        """Abandon any in-flight sign-in flow"""
        self._new_flow()
        self._set_state(None)

    def begin_hosted_sign_in(self) -> asyncio.Task:
        """
        Start a GitHub.com sign-in, going straight to the Authentication step.

        Must be called from within a running event loop. Returns the
        background task refreshing basic auth support for the endpoint.
        """
        # Raises RuntimeError before any state is written
        asyncio.get_running_loop()

        endpoint = self._hosted_endpoint
        generation = self._new_flow()

        self._set_state(
            AuthenticationState(
                endpoint=endpoint,
                supports_basic_auth=self._capabilities.try_read(endpoint),
                forgot_password_url=get_forgot_password_url(endpoint),
            )
        )
        return self._spawn(self._refresh_basic_auth_support(endpoint, generation))

    async def _refresh_basic_auth_support(self, endpoint: str, generation: int) -> None:
        supports_basic_auth = await self._probe_logging_errors(endpoint)
        if supports_basic_auth is None:
            return

        current = self._state
        if (
            generation == self._generation
            and isinstance(current, AuthenticationState)
            and current.endpoint == endpoint
        ):
            self._set_state(replace(current, supports_basic_auth=supports_basic_auth))

    def begin_enterprise_sign_in(self) -> None:
        """Start a GitHub Enterprise Server sign-in at the EndpointEntry step"""
        self._new_flow()
        self._set_state(EndpointEntryState())

    async def set_endpoint(self, url: str) -> None:
        """
        Advance from EndpointEntry with the address of an enterprise instance.

        The address is validated for syntax and reachability, problems are
        reported on the EndpointEntry state.
        """
        current = self._require_step(SignInStep.ENDPOINT_ENTRY, "endpoint entry")
        attempt = self._start_attempt(current)

        try:
            valid_url = self._validate_url(url)
        except EndpointValidationError as e:
            error: Exception = e
            if isinstance(e, InvalidURLError):
                error = SignInError(INVALID_URL_MESSAGE)
            elif isinstance(e, InvalidProtocolError):
                error = SignInError(INVALID_PROTOCOL_MESSAGE)
            logger.info(f"[SignInStore] Rejected enterprise address: {e}")
            self._fail_in_state(error)
            return

        endpoint = get_enterprise_api_url(valid_url)
        try:
            supports_basic_auth = await self._capabilities.probe(endpoint)
        except HostNotFoundError as e:
            logger.info(f"[SignInStore] {e}")
            if self._is_live(attempt, SignInStep.ENDPOINT_ENTRY):
                self._fail_in_state(SignInError(HOST_NOT_FOUND_MESSAGE))
            return
        except Exception as e:
            logger.info(f"[SignInStore] Capability probe for {endpoint} failed: {e}")
            if self._is_live(attempt, SignInStep.ENDPOINT_ENTRY):
                self._fail_in_state(e)
            return

        if not self._is_live(attempt, SignInStep.ENDPOINT_ENTRY):
            return

        self._set_state(
            AuthenticationState(
                endpoint=endpoint,
                supports_basic_auth=supports_basic_auth,
                forgot_password_url=get_forgot_password_url(endpoint),
            )
        )

    async def authenticate_with_credentials(self, username: str, password: str) -> None:
        """
        Advance from Authentication using a username and password, either to
        Success or to TwoFactorAuthentication. Rejections are reported on the
        Authentication state.
        """
        current = self._require_step(SignInStep.AUTHENTICATION, "authentication")
        endpoint = current.endpoint
        attempt = self._start_attempt(current)
        step = SignInStep.AUTHENTICATION

        try:
            outcome = await self._service.create_authorization(
                endpoint, username, password, None
            )
        except Exception as e:
            if self._is_live(attempt, step):
                self._emit_error(e)
                self._stop_loading()
            return

        if not self._is_live(attempt, step):
            return

        if isinstance(outcome, Authorized):
            await self._complete_basic_sign_in(attempt, step, endpoint, outcome.token)
        elif isinstance(outcome, TwoFactorRequired):
            self._set_state(
                TwoFactorAuthenticationState(
                    endpoint=endpoint,
                    username=username,
                    password=password,
                    otp_channel=outcome.mode,
                )
            )
        elif isinstance(outcome, Failed):
            self._fail_in_state(SignInError(_incorrect_credentials_message(username)))
        elif isinstance(outcome, ServiceError):
            self._fail_in_state(
                SignInError(
                    "The server responded with an error while attempting to "
                    f"authenticate ({outcome.status})\n\n{outcome.status_text}"
                )
            )
        elif isinstance(outcome, UserRequiresVerification):
            self._fail_in_state(SignInError(_unverified_user_message(username)))
        elif isinstance(outcome, PersonalAccessTokenBlocked):
            self._fail_in_state(SignInError(PERSONAL_ACCESS_TOKEN_MESSAGE))
        elif isinstance(outcome, EnterpriseTooOld):
            self._fail_in_state(SignInError(ENTERPRISE_TOO_OLD_MESSAGE))
        elif isinstance(outcome, WebFlowRequired):
            self._set_state(
                replace(
                    self._state,
                    supports_basic_auth=False,
                    loading=False,
                    error=None,
                )
            )
        else:
            raise UnexpectedOutcomeError(outcome)

    async def submit_two_factor_code(self, otp: str) -> None:
        """
        Complete the flow from TwoFactorAuthentication with a one-time code.
        """
        current: TwoFactorAuthenticationState = self._require_step(
            SignInStep.TWO_FACTOR_AUTHENTICATION, "two factor authentication"
        )
        attempt = self._start_attempt(current)
        step = SignInStep.TWO_FACTOR_AUTHENTICATION

        try:
            outcome: AuthorizationOutcome = await self._service.create_authorization(
                current.endpoint, current.username, current.password, otp
            )
        except Exception as e:
            if self._is_live(attempt, step):
                self._emit_error(e)
                self._stop_loading()
            return

        if not self._is_live(attempt, step):
            return

        if isinstance(outcome, Authorized):
            await self._complete_basic_sign_in(
                attempt, step, current.endpoint, outcome.token
            )
        elif isinstance(outcome, (Failed, TwoFactorRequired)):
            # A second TwoFactorRequired is reported as a failed code rather
            # than starting another round of two-factor entry
            self._fail_in_state(SignInError(TWO_FACTOR_FAILED_MESSAGE))
        elif isinstance(outcome, ServiceError):
            self._emit_error(
                SignInError(
                    f"The server responded with an error ({outcome.status})"
                    f"\n\n{outcome.status_text}"
                )
            )
            self._stop_loading()
        elif isinstance(outcome, UserRequiresVerification):
            self._fail_in_state(SignInError(_unverified_user_message(current.username)))
        elif isinstance(outcome, PersonalAccessTokenBlocked):
            self._fail_in_state(SignInError(PERSONAL_ACCESS_TOKEN_MESSAGE))
        elif isinstance(outcome, EnterpriseTooOld):
            self._fail_in_state(SignInError(ENTERPRISE_TOO_OLD_MESSAGE))
        elif isinstance(outcome, WebFlowRequired):
            self._set_state(
                AuthenticationState(
                    endpoint=current.endpoint,
                    supports_basic_auth=False,
                    forgot_password_url=get_forgot_password_url(current.endpoint),
                )
            )
        else:
            raise UnexpectedOutcomeError(outcome)

    async def _complete_basic_sign_in(
        self, attempt: int, step: SignInStep, endpoint: str, token: str
    ) -> None:
        try:
            account = await self._service.fetch_user(endpoint, token)
        except Exception as e:
            if self._is_live(attempt, step):
                self._emit_error(e)
                self._stop_loading()
            return

        if not self._is_live(attempt, step):
            return

        self._emit_authenticate(account, SignInMethod.BASIC)
        self._set_state(SuccessState())

    async def authenticate_with_browser(self) -> None:
        """
        Sign in through the system browser from the Authentication step.

        Only completes once the user has signed in. If the browser flow is
        abandoned the state stays loading until the flow is reset.
        """
        current = self._require_step(
            SignInStep.AUTHENTICATION, "browser authentication"
        )
        attempt = self._start_attempt(current)
        step = SignInStep.AUTHENTICATION

        try:
            logger.info("[SignInStore] Initializing OAuth flow")
            account = await self._oauth_delegate.authenticate_via_browser(
                current.endpoint
            )
            logger.info("[SignInStore] Account resolved")
        except Exception as e:
            logger.info(f"[SignInStore] Error with OAuth flow: {e}")
            if self._is_live(attempt, step):
                self._fail_in_state(e)
            return

        if not self._is_live(attempt, step):
            return

        self._emit_authenticate(account, SignInMethod.WEB)
        self._set_state(SuccessState())
