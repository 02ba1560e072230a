"""
Method Router — Dispatch MCP methods to Okta tool handlers

Routes:
  initialize                 → server capabilities handshake
  notifications/initialized  → notification (no response)
  ping                       → pong
  tools/list                 → transformed tool listing
  tools/call                 → tool handler dispatch

call_tool() raises only ProtocolError. Handler failures of any kind are
normalized to INTERNAL_ERROR "API error: <message>" at this boundary.
"""

import asyncio
from typing import Any, Dict, List, Optional

from .config import Config
from .discovery import transform_tools
from .logger import get_logger
from .protocol import (
    initialize_result,
    tools_list_result,
    tool_result_content,
    text_content,
    serialize_result,
    ProtocolError,
    METHOD_NOT_FOUND,
    INVALID_PARAMS,
    INTERNAL_ERROR,
)
from .tools import ApiTool

log = get_logger("router")

_NOTIFICATIONS = frozenset({
    "initialized",
    "notifications/initialized",
    "notifications/cancelled",
})


class Router:
    """
    MCP method dispatcher over a read-only handler table.

    One Router can be shared by every protocol server instance; it holds
    no per-session state.
    """

    def __init__(self, tools: List[ApiTool], timeout: Optional[float] = None):
        self._tools: Dict[str, ApiTool] = {}
        for tool in tools:
            self._tools.setdefault(tool.name, tool)
        self._listing = transform_tools(self._tools.values())
        self._timeout = Config.TOOL_TIMEOUT if timeout is None else timeout

    # ── handler table ────────────────────────────────────────────

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def list_tools(self) -> List[Dict[str, Any]]:
        """Advertised tool listing. Pure; a fresh list on every call."""
        return [dict(entry) for entry in self._listing]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Validate and invoke one tool, returning an MCP tool result."""
        args = arguments if arguments is not None else {}
        log.info(f"tools/call received: {name}")

        tool = self._tools.get(name)
        if tool is None:
            log.warning(f"Unknown tool requested: {name}")
            raise ProtocolError(METHOD_NOT_FOUND, f"Unknown tool: {name}")

        for param in tool.required:
            if param not in args:
                log.warning(f"{name}: missing required parameter {param}")
                raise ProtocolError(INVALID_PARAMS, f"Missing required parameter: {param}")
        log.debug(f"{name}: parameters validated ({sorted(args)})")

        try:
            if self._timeout and self._timeout > 0:
                try:
                    result = await asyncio.wait_for(tool(args), timeout=self._timeout)
                except asyncio.TimeoutError:
                    log.error(f"{name}: timed out after {self._timeout}s")
                    raise ProtocolError(INTERNAL_ERROR, f"API error: {name} timed out after {self._timeout}s")
            else:
                result = await tool(args)
        except ProtocolError:
            raise
        except Exception as exc:
            log.error(f"{name} failed: {exc}", exc_info=True)
            raise ProtocolError(INTERNAL_ERROR, f"API error: {exc}")

        log.info(f"{name}: execution completed")
        return tool_result_content([text_content(serialize_result(result))])

    # ── dispatch ─────────────────────────────────────────────────

    async def route(self, msg: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Route a validated request or notification.

        Returns the result payload (to be wrapped in a JSON-RPC response),
        or None for notifications that need no response.
        """
        method = msg.get("method", "")
        params = msg.get("params")
        if params is None:
            params = {}
        elif not isinstance(params, dict):
            raise ProtocolError(INVALID_PARAMS, "params must be an object")

        if method == "initialize":
            return self._handle_initialize(params)

        if method in _NOTIFICATIONS:
            return None

        if method == "ping":
            return {}

        if method == "tools/list":
            return tools_list_result(self.list_tools())

        if method == "tools/call":
            return await self._handle_tools_call(params)

        raise ProtocolError(METHOD_NOT_FOUND, f"Unknown method: {method}")

    def _handle_initialize(self, params: Dict) -> Dict[str, Any]:
        log.info(
            f"Client initialize: {params.get('clientInfo', {}).get('name', '?')} "
            f"protocol={params.get('protocolVersion', '?')}"
        )
        return initialize_result(
            server_name=Config.SERVER_NAME,
            server_version=Config.SERVER_VERSION,
            protocol_version=Config.PROTOCOL_VERSION,
        )

    async def _handle_tools_call(self, params: Dict) -> Dict[str, Any]:
        name = params.get("name", "")
        args = params.get("arguments")

        if not name:
            raise ProtocolError(INVALID_PARAMS, "Missing tool name")
        if args is not None and not isinstance(args, dict):
            raise ProtocolError(INVALID_PARAMS, "Tool arguments must be an object")

        return await self.call_tool(name, args)
