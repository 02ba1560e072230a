"""Tests for the okta-mcp command line."""

import pytest

from okta_mcp import __main__ as cli
from okta_mcp import credentials
from okta_mcp.config import Config

pytestmark = pytest.mark.anyio


class TestParseArgs:
    def test_defaults_to_run(self):
        args = cli.parse_args([])
        assert args.command == "run"
        assert args.sse is False
        assert args.port == Config.PORT
        assert args.tools == "*"

    def test_bare_flags_mean_run(self):
        args = cli.parse_args(["--sse", "--port", "4000", "--tools", "list_*"])
        assert args.command == "run"
        assert args.sse is True
        assert args.port == 4000
        assert args.tools == "list_*"

    def test_init_flags(self):
        args = cli.parse_args(["init", "--domain", "dev.okta.com", "--token", "t"])
        assert (args.command, args.domain, args.token) == ("init", "dev.okta.com", "t")


class TestCommands:
    async def test_run_without_credentials_exits_1(self, capsys):
        code = await cli.cmd_run(cli.parse_args([]))
        assert code == 1
        assert "No credentials found" in capsys.readouterr().err

    async def test_session_and_logout(self, capsys):
        assert await cli.cmd_session(cli.parse_args(["session"])) == 1

        await credentials.store_credentials("dev.okta.com", "secret")
        assert await cli.cmd_session(cli.parse_args(["session"])) == 0
        assert "dev.okta.com" in capsys.readouterr().out

        assert await cli.cmd_logout(cli.parse_args(["logout"])) == 0
        assert "Credentials removed." in capsys.readouterr().out
        assert await credentials.get_credentials() is None

    async def test_init_rejects_invalid_credentials(self, monkeypatch, capsys):
        async def reject(creds, transport=None):
            assert creds.domain == "dev.okta.com"
            return False

        monkeypatch.setattr(credentials, "validate_credentials", reject)
        code = await cli.cmd_init(cli.parse_args(["init", "--domain", "https://dev.okta.com/", "--token", "t"]))
        assert code == 1
        assert not Config.CONFIG_FILE.exists()

    async def test_init_stores_valid_credentials(self, monkeypatch):
        async def accept(creds, transport=None):
            return True

        monkeypatch.setattr(credentials, "validate_credentials", accept)
        code = await cli.cmd_init(cli.parse_args(["init", "--domain", "dev.okta.com", "--token", "t"]))
        assert code == 0
        assert (await credentials.get_credentials()).domain == "dev.okta.com"


def test_build_router_applies_filter():
    router = cli.build_router("list_group*")
    assert router.tool_names == ["list_groups", "list_group_users", "list_group_apps"]
