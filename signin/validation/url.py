"""Validation of user-entered GitHub Enterprise Server addresses"""

import ipaddress
import re
from urllib.parse import urlsplit

from ..core.exceptions import InvalidProtocolError, InvalidURLError

SUPPORTED_SCHEMES = ("http", "https")
HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


def _is_valid_host(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass

    if len(host) > 253:
        return False
    return all(HOSTNAME_LABEL.match(label) for label in host.rstrip(".").split("."))


def validate_url(address: str) -> str:
    """
    Normalize an enterprise address, assuming https when no scheme is given.
    Raises InvalidURLError or InvalidProtocolError.
    """
    candidate = address.strip()
    if not candidate:
        raise InvalidURLError(address, "address is empty")

    if not SCHEME_PREFIX.match(candidate):
        candidate = f"https://{candidate}"

    try:
        parsed = urlsplit(candidate)
        host = parsed.hostname
        # Accessing .port raises ValueError for out of range or non numeric ports
        parsed.port
    except ValueError as e:
        raise InvalidURLError(address, str(e)) from e

    if parsed.scheme.lower() not in SUPPORTED_SCHEMES:
        raise InvalidProtocolError(address, f"unsupported protocol '{parsed.scheme}'")

    if not host or not _is_valid_host(host):
        raise InvalidURLError(address, "missing or malformed host name")

    path = parsed.path.rstrip("/")
    return f"{parsed.scheme.lower()}://{parsed.netloc}{path}"
