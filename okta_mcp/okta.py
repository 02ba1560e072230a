"""Okta management API client — thin async wrapper over httpx.

Every operation handler talks to Okta through OktaClient. Non-2xx responses
become OktaAPIError so dispatch can surface them as internal errors.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .config import Config
from .credentials import Credentials, require_credentials
from .logger import get_logger

log = get_logger("okta")

# Replaced in tests with an httpx.MockTransport
HTTP_TRANSPORT: Optional[httpx.AsyncBaseTransport] = None


class OktaAPIError(Exception):
    """Okta answered with a non-success status."""

    def __init__(self, status_code: int, payload: Any, suggestion: str = ""):
        self.status_code = status_code
        self.payload = payload
        self.suggestion = suggestion
        message = f"HTTP {status_code}: {json.dumps(payload)}"
        if suggestion:
            message += f" Suggestion: {suggestion}"
        super().__init__(message)


def _error_payload(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {"error": resp.text}


class OktaClient:
    """Authenticated client bound to one Okta org."""

    def __init__(
        self,
        credentials: Credentials,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=credentials.base_url,
            timeout=timeout or Config.HTTP_TIMEOUT,
            transport=transport,
            headers={
                "Authorization": f"SSWS {credentials.api_token}",
                "Accept": "application/json",
            },
        )

    async def __aenter__(self) -> "OktaClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        suggestions: Optional[Dict[int, str]] = None,
    ) -> httpx.Response:
        """Issue a request and return the raw response, raising on failure."""
        if params:
            params = {k: _param(v) for k, v in params.items() if v is not None}
        log.debug(f"{method} {path} params={params}")

        resp = await self._client.request(method, path, params=params or None, json=body)
        if not resp.is_success:
            suggestion = (suggestions or {}).get(resp.status_code, "")
            raise OktaAPIError(resp.status_code, _error_payload(resp), suggestion)
        return resp

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """Like send(), but decodes the JSON body (None for empty responses)."""
        resp = await self.send(method, path, **kwargs)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)


def _param(value: Any) -> Any:
    # Okta expects lowercase booleans in query strings
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


@asynccontextmanager
async def connect() -> AsyncIterator[OktaClient]:
    """Open a client for the configured org. Raises CredentialsNotConfigured."""
    credentials = await require_credentials()
    client = OktaClient(credentials, transport=HTTP_TRANSPORT)
    try:
        yield client
    finally:
        await client.close()
