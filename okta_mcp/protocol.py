"""
JSON-RPC 2.0 / MCP protocol helpers

Message classification, envelope builders and the error taxonomy shared by
the router, the protocol server and both transports.
"""

import json
from typing import Any, Dict, List, Optional

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Implementation-defined (transport layer)
SERVER_ERROR = -32000


class ProtocolError(Exception):
    """A failure that maps directly onto a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_error(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


def validate_message(msg: Any) -> str:
    """
    Classify a decoded JSON-RPC message.

    Returns one of "request", "notification", "response", "error".
    Raises ProtocolError(INVALID_REQUEST) for anything else.
    """
    if not isinstance(msg, dict):
        raise ProtocolError(INVALID_REQUEST, "Message must be a JSON object")
    if msg.get("jsonrpc") != JSONRPC_VERSION:
        raise ProtocolError(INVALID_REQUEST, "jsonrpc must be '2.0'")

    if "method" in msg:
        if not isinstance(msg["method"], str) or not msg["method"]:
            raise ProtocolError(INVALID_REQUEST, "method must be a non-empty string")
        return "request" if "id" in msg else "notification"

    if "id" in msg:
        if "error" in msg:
            return "error"
        if "result" in msg:
            return "response"

    raise ProtocolError(INVALID_REQUEST, "Message is neither a request nor a response")


def make_response(request_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def make_error(request_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def initialize_result(server_name: str, server_version: str, protocol_version: str) -> Dict[str, Any]:
    return {
        "protocolVersion": protocol_version,
        "capabilities": {"tools": {}},
        "serverInfo": {"name": server_name, "version": server_version},
    }


def tools_list_result(tools: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"tools": tools}


def text_content(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def tool_result_content(content: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"content": content}


def serialize_result(value: Any) -> str:
    """Pretty-printed JSON, the text payload of a successful tool call."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def request_id_of(body: Any) -> Optional[Any]:
    """Best-effort id extraction from an arbitrary posted body."""
    if isinstance(body, dict):
        return body.get("id")
    return None
