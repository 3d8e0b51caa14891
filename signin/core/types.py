"""Core data types for the sign-in engine"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar


class SignInStep(Enum):
    """Steps a sign-in flow can be on (no flow is represented by None)"""

    ENDPOINT_ENTRY = "EndpointEntry"  # Enterprise only, first step
    AUTHENTICATION = "Authentication"  # Credentials or browser
    TWO_FACTOR_AUTHENTICATION = "TwoFactorAuthentication"
    SUCCESS = "Success"


class SignInMethod(Enum):
    """How the user proved their identity"""

    BASIC = "basic"  # Username, password and possibly an OTP
    WEB = "web"  # Browser OAuth with a redirect back to the app


class AuthenticationMode(Enum):
    """Channel over which the host delivers the two-factor code"""

    APP = "app"
    SMS = "sms"


@dataclass(frozen=True)
class Account:
    """Resolved user identity"""

    login: str
    endpoint: str
    token: str = field(repr=False)
    id: int | None = None
    name: str | None = None
    emails: tuple[str, ...] = ()
    avatar_url: str | None = None


@dataclass(frozen=True)
class ServerMetadata:
    """Subset of the /meta payload the engine cares about"""

    verifiable_password_authentication: bool


# Flow states. All states are immutable and are replaced wholesale on
# every transition.


@dataclass(frozen=True)
class EndpointEntryState:
    kind: ClassVar[SignInStep] = SignInStep.ENDPOINT_ENTRY

    error: Exception | None = None
    loading: bool = False


@dataclass(frozen=True)
class AuthenticationState:
    kind: ClassVar[SignInStep] = SignInStep.AUTHENTICATION

    endpoint: str
    supports_basic_auth: bool
    forgot_password_url: str
    error: Exception | None = None
    loading: bool = False


@dataclass(frozen=True)
class TwoFactorAuthenticationState:
    kind: ClassVar[SignInStep] = SignInStep.TWO_FACTOR_AUTHENTICATION

    endpoint: str
    username: str
    password: str = field(repr=False)  # Kept in memory for the OTP retry only
    otp_channel: AuthenticationMode = AuthenticationMode.APP
    error: Exception | None = None
    loading: bool = False


@dataclass(frozen=True)
class SuccessState:
    kind: ClassVar[SignInStep] = SignInStep.SUCCESS


FlowState = (
    EndpointEntryState
    | AuthenticationState
    | TwoFactorAuthenticationState
    | SuccessState
)


# Authorization outcomes


@dataclass(frozen=True)
class Authorized:
    token: str = field(repr=False)


@dataclass(frozen=True)
class TwoFactorRequired:
    mode: AuthenticationMode


@dataclass(frozen=True)
class Failed:
    pass


@dataclass(frozen=True)
class ServiceError:
    status: int
    status_text: str


@dataclass(frozen=True)
class UserRequiresVerification:
    pass


@dataclass(frozen=True)
class PersonalAccessTokenBlocked:
    pass


@dataclass(frozen=True)
class EnterpriseTooOld:
    pass


@dataclass(frozen=True)
class WebFlowRequired:
    pass


AuthorizationOutcome = (
    Authorized
    | TwoFactorRequired
    | Failed
    | ServiceError
    | UserRequiresVerification
    | PersonalAccessTokenBlocked
    | EnterpriseTooOld
    | WebFlowRequired
)
