"""Tests for credential storage, fallback order and validation."""

import json
import stat

import httpx
import pytest

from okta_mcp import credentials
from okta_mcp.config import Config

pytestmark = pytest.mark.anyio


class TestResolution:
    async def test_nothing_configured(self):
        assert await credentials.get_credentials() is None
        with pytest.raises(credentials.CredentialsNotConfigured, match="okta-mcp init"):
            await credentials.require_credentials()

    async def test_environment_fallback(self, monkeypatch):
        monkeypatch.setenv(Config.DOMAIN_ENV, "env.okta.com")
        monkeypatch.setenv(Config.TOKEN_ENV, "env-token")
        creds = await credentials.get_credentials()
        assert creds == credentials.Credentials("env.okta.com", "env-token", "environment")
        assert creds.base_url == "https://env.okta.com"

    async def test_half_configured_environment_is_ignored(self, monkeypatch):
        monkeypatch.setenv(Config.DOMAIN_ENV, "env.okta.com")
        assert await credentials.get_credentials() is None

    async def test_file_wins_over_environment(self, monkeypatch):
        monkeypatch.setenv(Config.DOMAIN_ENV, "env.okta.com")
        monkeypatch.setenv(Config.TOKEN_ENV, "env-token")
        await credentials.store_credentials("file.okta.com", "file-token")
        creds = await credentials.get_credentials()
        assert creds.domain == "file.okta.com"
        assert creds.storage == "file"

    async def test_corrupt_file_falls_back(self, monkeypatch):
        Config.CONFIG_FILE.write_text("{not json")
        monkeypatch.setenv(Config.DOMAIN_ENV, "env.okta.com")
        monkeypatch.setenv(Config.TOKEN_ENV, "env-token")
        assert (await credentials.get_credentials()).storage == "environment"


class TestStorage:
    async def test_store_writes_owner_only_file(self):
        await credentials.store_credentials("dev.okta.com", "secret")
        mode = stat.S_IMODE(Config.CONFIG_FILE.stat().st_mode)
        assert mode == 0o600

        data = json.loads(Config.CONFIG_FILE.read_text())
        assert data["domain"] == "dev.okta.com"
        assert data["apiToken"] == "secret"
        assert data["storage"] == "file"
        assert data["version"] == Config.CREDENTIALS_VERSION
        assert "createdAt" in data

    async def test_clear(self):
        assert await credentials.clear_credentials() is False
        await credentials.store_credentials("dev.okta.com", "secret")
        assert await credentials.clear_credentials() is True
        assert not Config.CONFIG_FILE.exists()

    async def test_session_info(self, monkeypatch):
        assert await credentials.get_session_info() is None

        monkeypatch.setenv(Config.DOMAIN_ENV, "env.okta.com")
        monkeypatch.setenv(Config.TOKEN_ENV, "env-token")
        info = await credentials.get_session_info()
        assert info == {"domain": "env.okta.com", "storage": "environment", "createdAt": "N/A", "version": "N/A"}

        await credentials.store_credentials("dev.okta.com", "secret")
        info = await credentials.get_session_info()
        assert info["storage"] == "file"
        assert info["version"] == Config.CREDENTIALS_VERSION


class TestValidation:
    async def test_valid_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        creds = credentials.Credentials("dev.okta.com", "tok", "file")
        assert await credentials.validate_credentials(creds, transport=httpx.MockTransport(handler)) is True
        assert seen[0].url.path == "/api/v1/apps"
        assert seen[0].url.params["limit"] == "1"
        assert seen[0].headers["Authorization"] == "SSWS tok"

    async def test_rejected_token(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"errorCode": "E0000011"}))
        creds = credentials.Credentials("dev.okta.com", "bad", "file")
        assert await credentials.validate_credentials(creds, transport=transport) is False

    async def test_unreachable_org(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        creds = credentials.Credentials("dev.okta.com", "tok", "file")
        assert await credentials.validate_credentials(creds, transport=httpx.MockTransport(handler)) is False

    async def test_nothing_to_validate(self):
        assert await credentials.validate_credentials() is False
