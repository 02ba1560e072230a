#!/usr/bin/env python3
"""
Entry point: python -m okta_mcp (or the okta-mcp console script)

Usage:
    okta-mcp [run] [--sse] [--port N] [--tools PATTERN]   Start the server
    okta-mcp init [--domain D --token T]                  Store Okta credentials
    okta-mcp session                                      Show stored credentials
    okta-mcp logout                                       Remove stored credentials

stdio mode writes protocol traffic to stdout, so everything the run command
says goes to stderr or the log file.
"""

import argparse
import asyncio
import getpass
import inspect
import sys

from . import credentials
from .config import Config
from .discovery import discover_tools, filter_tools
from .logger import get_logger
from .router import Router

log = get_logger("main")

COMMANDS = ("run", "init", "session", "logout")


def build_router(pattern: str = "*") -> Router:
    """Discover registered tools, apply the name filter, build the router."""
    tools = filter_tools(discover_tools(), pattern)
    log.info(f"Serving {len(tools)} tools (filter={pattern!r})")
    return Router(tools)


# ── commands ─────────────────────────────────────────────────────────────────

async def cmd_run(args) -> int:
    if await credentials.get_credentials() is None:
        print("No credentials found. Run: okta-mcp init", file=sys.stderr)
        return 1

    router = build_router(args.tools)
    if args.sse:
        from .sse import run_sse

        print(
            f"{Config.SERVER_NAME} listening on http://{Config.HOST}:{args.port}{Config.SSE_PATH}",
            file=sys.stderr,
        )
        await run_sse(router, port=args.port)
    else:
        from .server import run_stdio

        await run_stdio(router)
    return 0


async def cmd_init(args) -> int:
    domain = args.domain or input("Okta domain (e.g. dev-123456.okta.com): ").strip()
    token = args.token or getpass.getpass("Okta API token: ").strip()
    if not domain or not token:
        print("Both domain and API token are required.")
        return 1

    domain = domain.removeprefix("https://").removeprefix("http://").rstrip("/")
    creds = credentials.Credentials(domain, token, "file")

    print(f"Validating credentials against {domain}...")
    if not await credentials.validate_credentials(creds):
        print("Credential validation failed. Check the domain and API token.")
        return 1

    await credentials.store_credentials(domain, token)
    print(f"Credentials stored in {Config.CONFIG_FILE}")
    return 0


async def cmd_session(args) -> int:
    info = await credentials.get_session_info()
    if info is None:
        print("Not configured. Run: okta-mcp init")
        return 1

    print(f"  Domain:  {info['domain']}")
    print(f"  Storage: {info['storage']}")
    print(f"  Created: {info['createdAt']}")
    print(f"  Version: {info['version']}")
    return 0


async def cmd_logout(args) -> int:
    if await credentials.clear_credentials():
        print("Credentials removed.")
    else:
        print("No stored credentials found.")
    return 0


# ── argument parsing ─────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="okta-mcp", description="Okta MCP server")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Start the MCP server (default)")
    run.add_argument("--sse", action="store_true", help="Serve SSE over HTTP instead of stdio")
    run.add_argument("--port", type=int, default=Config.PORT, help=f"HTTP port for --sse (default {Config.PORT})")
    run.add_argument("--tools", default="*", help="Comma-separated glob of tool names to expose")

    init = sub.add_parser("init", help="Store Okta credentials")
    init.add_argument("--domain", help="Okta domain, e.g. dev-123456.okta.com")
    init.add_argument("--token", help="Okta API token")

    sub.add_parser("session", help="Show stored credentials")
    sub.add_parser("logout", help="Remove stored credentials")
    return parser


def parse_args(argv=None) -> argparse.Namespace:
    argv = list(sys.argv[1:] if argv is None else argv)
    # Bare flags mean "run"
    if not argv or argv[0] not in COMMANDS and argv[0] not in ("-h", "--help"):
        argv.insert(0, "run")
    return build_parser().parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    commands = {
        "run": cmd_run,
        "init": cmd_init,
        "session": cmd_session,
        "logout": cmd_logout,
    }
    handler = commands[args.command]

    try:
        if inspect.iscoroutinefunction(handler):
            code = asyncio.run(handler(args))
        else:
            code = handler(args)
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
