"""Authorization service protocol"""

from typing import Protocol

from ..core.types import Account, AuthorizationOutcome, ServerMetadata


class AuthorizationService(Protocol):
    """Protocol for the host API calls the sign-in flow depends on"""

    async def create_authorization(
        self, endpoint: str, username: str, password: str, otp: str | None
    ) -> AuthorizationOutcome:
        """
        Exchange credentials (and an optional OTP) for a token.
        Raises on transport failure, rejected credentials come back as outcomes.
        """
        ...

    async def fetch_user(self, endpoint: str, token: str) -> Account:
        """Load the profile of the user owning the token"""
        ...

    async def fetch_metadata(self, endpoint: str) -> ServerMetadata | None:
        """
        Load server metadata. Returns None when the server does not report
        whether password authentication is available.
        """
        ...
