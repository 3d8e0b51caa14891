"""Sign-in orchestration for GitHub.com and GitHub Enterprise Server"""

from .capability.cache import CapabilityCache
from .config import SignInSettings, load_settings
from .core.types import (
    Account,
    AuthenticationMode,
    AuthenticationState,
    EndpointEntryState,
    SignInMethod,
    SignInStep,
    SuccessState,
    TwoFactorAuthenticationState,
)
from .logging_setup import setup_logging
from .store.sign_in_store import SignInStore

__all__ = [
    "Account",
    "AuthenticationMode",
    "AuthenticationState",
    "CapabilityCache",
    "EndpointEntryState",
    "SignInMethod",
    "SignInSettings",
    "SignInStep",
    "SignInStore",
    "SuccessState",
    "TwoFactorAuthenticationState",
    "load_settings",
    "setup_logging",
]
