"""Tests for enterprise address validation and endpoint derivation."""

from __future__ import annotations

import pytest

from signin.api.endpoints import (
    get_enterprise_api_url,
    get_forgot_password_url,
    get_hosted_api_endpoint,
    get_html_url,
)
from signin.core.exceptions import InvalidProtocolError, InvalidURLError
from signin.validation.url import validate_url


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("https://github.example.com", "https://github.example.com"),
        ("github.example.com", "https://github.example.com"),
        ("http://github.example.com:8080/", "http://github.example.com:8080"),
        ("  HTTPS://ghe.corp.local/  ", "https://ghe.corp.local"),
        ("https://10.0.0.12", "https://10.0.0.12"),
    ],
)
def test_validate_url_normalizes(address, expected) -> None:
    assert validate_url(address) == expected


@pytest.mark.parametrize(
    "address", ["", "not a url", "https://", "https://bad_host!", "https://host:99999"]
)
def test_validate_url_rejects_malformed(address) -> None:
    with pytest.raises(InvalidURLError):
        validate_url(address)


@pytest.mark.parametrize("address", ["ftp://github.example.com", "ssh://git@host"])
def test_validate_url_rejects_protocols(address) -> None:
    with pytest.raises(InvalidProtocolError):
        validate_url(address)


def test_hosted_endpoint_defaults_to_dotcom(monkeypatch) -> None:
    monkeypatch.delenv("SIGNIN_HOSTED_API_ENDPOINT", raising=False)

    assert get_hosted_api_endpoint() == "https://api.github.com"


def test_hosted_endpoint_env_override(monkeypatch) -> None:
    monkeypatch.setenv("SIGNIN_HOSTED_API_ENDPOINT", "http://localhost:3000/api/v3/")

    assert get_hosted_api_endpoint() == "http://localhost:3000/api/v3"


def test_enterprise_and_html_urls() -> None:
    assert get_enterprise_api_url("https://example.com") == "https://example.com/api/v3"
    assert get_enterprise_api_url("http://ghe:8080/ignored") == "http://ghe:8080/api/v3"
    assert get_html_url("https://example.com/api/v3") == "https://example.com"
    assert get_html_url("https://api.github.com") == "https://github.com"
    assert (
        get_forgot_password_url("https://example.com/api/v3")
        == "https://example.com/password_reset"
    )
