"""
Okta credential storage — file first, then environment variables

The credentials file lives in Config.HOME_DIR and is written owner-only.
Everything here is consumed by the rest of the server through
require_credentials(); the other functions back the CLI commands.
"""

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from .config import Config
from .logger import get_logger

log = get_logger("credentials")


class CredentialsNotConfigured(Exception):
    """No usable domain/token pair was found in any storage tier."""

    def __init__(self, message: str = "Okta credentials not found. Run: okta-mcp init"):
        super().__init__(message)


@dataclass(frozen=True)
class Credentials:
    domain: str
    api_token: str
    storage: str

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"


def _read_config_file() -> Optional[Dict[str, Any]]:
    path = Config.CONFIG_FILE
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        log.warning(f"Error reading {path}, trying environment variables: {exc}")
        return None
    return data if isinstance(data, dict) else None


async def get_credentials() -> Optional[Credentials]:
    """Resolve credentials through the fallback chain, or None."""
    config = _read_config_file()
    if config and config.get("domain") and config.get("apiToken"):
        return Credentials(config["domain"], config["apiToken"], "file")

    domain = os.environ.get(Config.DOMAIN_ENV)
    token = os.environ.get(Config.TOKEN_ENV)
    if domain and token:
        return Credentials(domain, token, "environment")

    return None


async def require_credentials() -> Credentials:
    credentials = await get_credentials()
    if credentials is None:
        raise CredentialsNotConfigured()
    return credentials


async def store_credentials(domain: str, api_token: str) -> None:
    """Persist credentials to the config file with 0600 permissions."""
    Config.CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "domain": domain,
        "apiToken": api_token,
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "version": Config.CREDENTIALS_VERSION,
        "storage": "file",
    }
    fd = os.open(Config.CONFIG_FILE, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    os.chmod(Config.CONFIG_FILE, 0o600)
    log.info(f"Credentials stored for {domain}")


async def clear_credentials() -> bool:
    """Remove the stored credentials file. Returns True if any credentials existed."""
    had_credentials = await get_credentials() is not None

    if Config.CONFIG_FILE.exists():
        try:
            Config.CONFIG_FILE.unlink()
        except OSError as exc:
            log.warning(f"Could not delete config file: {exc}")

    return had_credentials


async def get_session_info() -> Optional[Dict[str, Any]]:
    credentials = await get_credentials()
    if credentials is None:
        return None

    if credentials.storage == "file":
        config = _read_config_file() or {}
        created_at = config.get("createdAt", "Unknown")
        version = config.get("version", "Unknown")
    else:
        created_at = "N/A"
        version = "N/A"

    return {
        "domain": credentials.domain,
        "storage": credentials.storage,
        "createdAt": created_at,
        "version": version,
    }


async def validate_credentials(
    credentials: Optional[Credentials] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Probe the apps endpoint to check the token is accepted."""
    credentials = credentials or await get_credentials()
    if credentials is None:
        return False

    try:
        async with httpx.AsyncClient(timeout=Config.HTTP_TIMEOUT, transport=transport) as client:
            resp = await client.get(
                f"{credentials.base_url}/api/v1/apps",
                params={"limit": 1},
                headers={
                    "Authorization": f"SSWS {credentials.api_token}",
                    "Accept": "application/json",
                },
            )
    except httpx.HTTPError as exc:
        log.warning(f"Credential validation failed: {exc}")
        return False

    return resp.is_success
