"""Configuration for the Okta MCP server"""

import os
from pathlib import Path


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


class Config:
    # Server identity
    SERVER_NAME = "okta-mcp-server"
    SERVER_VERSION = "0.1.0"
    PROTOCOL_VERSION = "2024-11-05"

    # Paths
    HOME_DIR = Path(os.environ.get("OKTA_MCP_HOME", Path.home() / ".okta-mcp"))
    CONFIG_FILE = HOME_DIR / "config.json"
    LOG_DIR = HOME_DIR / "logs"

    # Logging (NEVER to stdout)
    LOG_FILE = LOG_DIR / "okta-mcp.log"
    ERROR_LOG = LOG_DIR / "okta-mcp-errors.log"
    LOG_LEVEL = os.environ.get("OKTA_MCP_LOG_LEVEL", "DEBUG")

    # Environment credential fallback
    DOMAIN_ENV = "OKTA_DOMAIN"
    TOKEN_ENV = "OKTA_API_KEY"
    CREDENTIALS_VERSION = "1.0.0"

    # Multi-session (SSE) listener
    HOST = os.environ.get("OKTA_MCP_HOST", "127.0.0.1")
    PORT = int(os.environ.get("PORT", "3001"))
    MESSAGES_PATH = "/messages"
    SSE_PATH = "/sse"

    # Dispatch
    TOOL_PATHS = [
        p.strip()
        for p in os.environ.get("OKTA_MCP_TOOL_PATHS", "").split(",")
        if p.strip()
    ]
    TOOL_TIMEOUT = _float_env("OKTA_MCP_TOOL_TIMEOUT", 0.0)  # 0 = wait forever
    HTTP_TIMEOUT = _float_env("OKTA_MCP_HTTP_TIMEOUT", 30.0)

    @classmethod
    def ensure_dirs(cls):
        """Create required directories"""
        cls.HOME_DIR.mkdir(parents=True, exist_ok=True)
        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)
