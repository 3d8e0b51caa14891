"""Browser sign-in delegate protocol"""

from typing import Protocol

from ..core.types import Account


class OAuthDelegate(Protocol):
    """Protocol for the browser based OAuth handshake"""

    async def authenticate_via_browser(self, endpoint: str) -> Account:
        """
        Open the browser and wait for the protocol callback.

        Only returns once the user has signed in. If the user closes the
        browser or denies the app the coroutine never completes, failures
        the delegate can detect are raised as OAuthError.
        """
        ...
