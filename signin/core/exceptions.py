"""Custom exceptions for the sign-in engine"""

from typing import Any


class SignInError(Exception):
    """Base exception for the sign-in engine"""

    pass


class FatalSignInError(SignInError):
    """Contract violation by a caller or an implementation bug"""

    pass


class InvalidSignInStepError(FatalSignInError):
    """Operation invoked while the flow is on an incompatible step"""

    def __init__(self, step: Any, operation: str):
        self.step = step
        self.operation = operation
        step_text = step.value if step is not None else "null"
        super().__init__(
            f"Sign in step '{step_text}' not compatible with {operation}"
        )


class UnexpectedOutcomeError(FatalSignInError):
    """Authorization outcome outside the known set of kinds"""

    def __init__(self, outcome: Any):
        self.outcome = outcome
        super().__init__(f"Unsupported authorization outcome: {outcome!r}")


class EndpointValidationError(SignInError):
    """Enterprise address failed validation"""

    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Invalid address '{address}': {reason}")


class InvalidURLError(EndpointValidationError):
    """Address is not a syntactically valid URL"""

    pass


class InvalidProtocolError(EndpointValidationError):
    """Address uses a protocol other than http or https"""

    pass


class ApiError(SignInError):
    """API call returned an unexpected response"""

    def __init__(self, status_code: int, detail: str, response: Any = None):
        self.status_code = status_code
        self.detail = detail
        self.response = response
        super().__init__(f"API error {status_code}: {detail}")


class ApiTransportError(SignInError):
    """Request never produced a response (connection reset, timeout, TLS...)"""

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = detail
        super().__init__(f"Request to {url} failed: {detail}")


class HostNotFoundError(ApiTransportError):
    """Host name of the endpoint could not be resolved"""

    def __init__(self, url: str, host: str):
        self.host = host
        super().__init__(url, f"host '{host}' could not be resolved")


class EnterpriseUnreachableError(SignInError):
    """Enterprise endpoint did not answer the capability probe"""

    def __init__(self, endpoint: str, minimum_version: str):
        self.endpoint = endpoint
        self.minimum_version = minimum_version
        super().__init__(
            "Unable to authenticate with the GitHub Enterprise Server instance. "
            "Verify that the URL is correct, that your GitHub Enterprise Server "
            f"instance is running version {minimum_version} or later, that you "
            "have an internet connection and try again."
        )


class OAuthError(SignInError):
    """Browser sign-in delegate reported a failure"""

    pass
