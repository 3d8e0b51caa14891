"""Sign-in configuration loader"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from .api.endpoints import HOSTED_ENDPOINT_ENV, get_hosted_api_endpoint

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = ("repo", "user", "workflow")


@dataclass
class SignInSettings:
    """Settings for the authorization API client"""

    hosted_api_endpoint: str = field(default_factory=get_hosted_api_endpoint)
    client_id: str = ""
    client_secret: str = ""
    oauth_scopes: tuple[str, ...] = DEFAULT_SCOPES
    note: str = "signin"
    note_url: str = ""
    user_agent: str = "signin/0.1.0"
    request_timeout: float = 30.0  # Seconds, per HTTP request


def _apply_env_overrides(settings: SignInSettings) -> None:
    endpoint = os.getenv(HOSTED_ENDPOINT_ENV, "").strip()
    if endpoint:
        settings.hosted_api_endpoint = endpoint.rstrip("/")

    client_id = os.getenv("SIGNIN_CLIENT_ID", "").strip()
    if client_id:
        settings.client_id = client_id

    client_secret = os.getenv("SIGNIN_CLIENT_SECRET", "").strip()
    if client_secret:
        settings.client_secret = client_secret


def load_settings(config_path: str | Path = "config.json") -> SignInSettings:
    """Load sign-in settings from the "sign_in" section of a config file

    Args:
        config_path: Path to config.json

    Returns:
        SignInSettings, defaults are used for anything the file leaves out
    """
    settings = SignInSettings()
    path = Path(config_path)

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load sign-in config from {path}: {e}")
            config = {}

        section = config.get("sign_in", {}) if isinstance(config, dict) else {}
        if not isinstance(section, dict):
            logger.warning(f"sign_in section in {path} is not an object, ignoring it")
            section = {}
        if not section:
            logger.warning(f"No sign_in section found in {path}, using defaults")

        known = {f.name for f in fields(SignInSettings)}
        for key, value in section.items():
            if key not in known:
                logger.warning(f"Ignoring unknown sign_in setting: {key}")
                continue
            if key == "oauth_scopes":
                if not isinstance(value, list) or not all(
                    isinstance(scope, str) for scope in value
                ):
                    logger.warning("oauth_scopes must be a list of strings, ignoring it")
                    continue
                value = tuple(value)
            setattr(settings, key, value)
    else:
        logger.info(f"Config file {path} not found, using default sign-in settings")

    _apply_env_overrides(settings)
    settings.hosted_api_endpoint = settings.hosted_api_endpoint.rstrip("/")
    return settings
