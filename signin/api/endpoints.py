"""Endpoint URL derivation for GitHub.com and GitHub Enterprise Server"""

import os
from urllib.parse import urlsplit

DOTCOM_API_ENDPOINT = "https://api.github.com"
DOTCOM_HTML_URL = "https://github.com"
HOSTED_ENDPOINT_ENV = "SIGNIN_HOSTED_API_ENDPOINT"


def get_hosted_api_endpoint() -> str:
    """API endpoint of the hosted service, overridable through the environment"""
    override = os.getenv(HOSTED_ENDPOINT_ENV, "").strip()
    return override.rstrip("/") if override else DOTCOM_API_ENDPOINT


def get_enterprise_api_url(url: str) -> str:
    """API endpoint of an enterprise instance given its base address"""
    parsed = urlsplit(url)
    return f"{parsed.scheme}://{parsed.netloc}/api/v3"


def get_html_url(endpoint: str) -> str:
    """Root of the web UI belonging to an API endpoint"""
    if endpoint.rstrip("/") == DOTCOM_API_ENDPOINT:
        return DOTCOM_HTML_URL

    parsed = urlsplit(endpoint)
    return f"{parsed.scheme}://{parsed.netloc}"


def get_forgot_password_url(endpoint: str) -> str:
    return f"{get_html_url(endpoint)}/password_reset"
