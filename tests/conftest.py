"""Shared fixtures: isolated config home, fake tools, stubbed Okta API."""

import os
import tempfile

# Loggers create their directory at import time; keep them out of ~/.okta-mcp
os.environ.setdefault("OKTA_MCP_HOME", tempfile.mkdtemp(prefix="okta-mcp-tests-"))

import asyncio

import httpx
import pytest

from okta_mcp import okta
from okta_mcp.config import Config
from okta_mcp.router import Router
from okta_mcp.tools import api_tool


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point credential storage at a temp dir and clear env credentials."""
    monkeypatch.setattr(Config, "HOME_DIR", tmp_path)
    monkeypatch.setattr(Config, "CONFIG_FILE", tmp_path / "config.json")
    monkeypatch.setattr(Config, "TOOL_PATHS", [])
    monkeypatch.setattr(Config, "TOOL_TIMEOUT", 0.0)
    monkeypatch.delenv(Config.DOMAIN_ENV, raising=False)
    monkeypatch.delenv(Config.TOKEN_ENV, raising=False)
    monkeypatch.setattr(okta, "HTTP_TRANSPORT", None)
    return tmp_path


# ── Fake tools ───────────────────────────────────────────────────────────────

@pytest.fixture
def calls():
    """Record of (tool name, arguments) for every fake tool invocation."""
    return []


@pytest.fixture
def fake_tools(calls):
    @api_tool(
        "echo",
        "Echo the arguments back",
        {"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]},
    )
    async def echo(args):
        calls.append(("echo", args))
        return {"echo": args}

    @api_tool(
        "two_required",
        "Needs two parameters",
        {
            "type": "object",
            "properties": {"first": {"type": "string"}, "second": {"type": "string"}},
            "required": ["first", "second"],
        },
    )
    async def two_required(args):
        calls.append(("two_required", args))
        return "ok"

    @api_tool("explode", "Always fails", {"type": "object", "properties": {}, "required": []})
    async def explode(args):
        calls.append(("explode", args))
        raise RuntimeError("upstream exploded")

    @api_tool("slow", "Never finishes in time", {"type": "object", "properties": {}})
    async def slow(args):
        calls.append(("slow", args))
        await asyncio.sleep(10)
        return "late"

    return [echo, two_required, explode, slow]


@pytest.fixture
def router(fake_tools):
    return Router(fake_tools, timeout=0)


# ── Stubbed Okta API ─────────────────────────────────────────────────────────

class FakeOkta:
    """Route table for httpx.MockTransport; records every request.

    Adding the same route twice queues the responses; the last one repeats.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, status=200, json=None, headers=None):
        self.routes.setdefault((method, path), []).append((status, json, headers or {}))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self.routes.get((request.method, request.url.path))
        if not queued:
            return httpx.Response(404, json={"errorCode": "E0000007", "errorSummary": "Not found"})
        status, body, headers = queued.pop(0) if len(queued) > 1 else queued[0]
        if body is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=body, headers=headers)

    def last(self, method=None):
        matching = [r for r in self.requests if method is None or r.method == method]
        return matching[-1]


@pytest.fixture
def okta_api(monkeypatch):
    fake = FakeOkta()
    monkeypatch.setattr(okta, "HTTP_TRANSPORT", httpx.MockTransport(fake.handler))
    monkeypatch.setenv(Config.DOMAIN_ENV, "dev-123.okta.com")
    monkeypatch.setenv(Config.TOKEN_ENV, "test-token")
    return fake
