"""
Okta MCP Server — Okta administration tools over the Model Context Protocol

Two transports: stdio (one session per process) and SSE over HTTP
(one protocol server per connected client).
"""

__version__ = "0.1.0"

from .config import Config
from .discovery import discover_tools, filter_tools, transform_tools
from .router import Router
from .server import ProtocolServer, run_stdio
from .tools import ApiTool, api_tool
