"""
SSE Transport — multi-session MCP over HTTP (FastAPI)

Endpoints:
  GET  /sse                      open a session, returns an event stream
  POST /messages?sessionId=<id>  deliver one JSON-RPC message to a session
  GET  /health                   session and tool counts
  OPTIONS *                      CORS preflight, 200 with no body

Each session owns one ProtocolServer and one SseServerTransport, both
registered under the session id in SseSessionManager. Responses to posted
messages travel back over the session's event stream; the POST itself is
answered with 202 and an "accepted" envelope.
"""

import asyncio
import json
import secrets
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import anyio
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from .config import Config
from .logger import get_logger
from .protocol import (
    JSONRPC_VERSION,
    INVALID_PARAMS,
    SERVER_ERROR,
    ProtocolError,
    validate_message,
    request_id_of,
)
from .router import Router
from .server import ProtocolServer
from .transport import Transport

log = get_logger("sse")

ACCEPTED = "Accepted"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Credentials": "true",
}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


def _error_envelope(code: int, message: str, data: Any, request_id: Any) -> Dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "error": {"code": code, "message": message, "data": data},
        "id": request_id,
    }


# ── Response sink ────────────────────────────────────────────────────────────

class ResponseAdapter:
    """
    Node-style response sink (write_head / write / end) over a buffered
    HTTP response. end("Accepted") is rewritten into a JSON-RPC envelope
    carrying {"status": "accepted"}.
    """

    def __init__(self, request_id: Any = None):
        self.request_id = request_id
        self.status_code = 200
        self.headers: Dict[str, str] = {}
        self.headers_sent = False
        self.finished = False
        self._chunks: List[str] = []
        self._envelope: Optional[Dict[str, Any]] = None

    def write_head(self, status_code: int, headers: Optional[Dict[str, str]] = None) -> "ResponseAdapter":
        if self.headers_sent:
            raise RuntimeError("Headers already sent")
        self.status_code = status_code
        if headers:
            self.headers.update(headers)
        return self

    def write(self, chunk: str) -> bool:
        if self.finished:
            raise RuntimeError("Response already ended")
        self.headers_sent = True
        self._chunks.append(chunk)
        return True

    def end(self, payload: Optional[str] = None) -> "ResponseAdapter":
        if self.finished:
            raise RuntimeError("Response already ended")
        if payload == ACCEPTED:
            self._envelope = {
                "jsonrpc": JSONRPC_VERSION,
                "result": {"status": "accepted"},
                "id": self.request_id,
            }
        elif payload is not None:
            self._chunks.append(payload)
        self.headers_sent = True
        self.finished = True
        return self

    def to_response(self) -> Response:
        if self._envelope is not None:
            return JSONResponse(self._envelope, status_code=self.status_code, headers=self.headers)
        return Response(
            "".join(self._chunks),
            status_code=self.status_code,
            headers=self.headers,
            media_type="text/plain",
        )


# ── Event-stream transport ───────────────────────────────────────────────────

class SseServerTransport(Transport):
    """Server-to-client messages as SSE frames, client-to-server via POST."""

    def __init__(self, endpoint: str = Config.MESSAGES_PATH):
        super().__init__()
        self.session_id = secrets.token_hex(16)
        self._endpoint = endpoint
        self._frames: asyncio.Queue = asyncio.Queue()
        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def endpoint_url(self) -> str:
        return f"{self._endpoint}?sessionId={self.session_id}"

    async def start(self):
        if self._started:
            raise RuntimeError("SSE transport already started")
        self._started = True
        self._frames.put_nowait(_sse("endpoint", self.endpoint_url))

    def push(self, message: Dict[str, Any]):
        """Queue one message frame without awaiting."""
        if self._closed:
            raise ConnectionError("SSE stream closed")
        self._frames.put_nowait(_sse("message", json.dumps(message, ensure_ascii=False)))

    async def send(self, message: Dict[str, Any]):
        self.push(message)

    async def handle_post_message(self, body: Any, res: ResponseAdapter):
        """Decode a posted body, hand it to the server, answer through res."""
        if not self._started or self._closed:
            res.write_head(500).end("SSE connection not established")
            return

        try:
            if isinstance(body, (bytes, str)):
                body = json.loads(body)
            validate_message(body)
        except (ValueError, ProtocolError) as exc:
            res.write_head(400).end(f"Invalid message: {exc}")
            self._error(exc)
            return

        self._deliver(body)
        res.write_head(202).end(ACCEPTED)

    async def events(self) -> AsyncIterator[str]:
        """Yield SSE frames until the transport closes."""
        while True:
            frame = await self._frames.get()
            if frame is None:
                return
            yield frame

    async def close(self):
        if self._closed:
            return
        self._closed = True
        self._frames.put_nowait(None)
        self._signal_close()


# ── Session manager ──────────────────────────────────────────────────────────

class SseSessionManager:
    """
    Owns the two session tables (id → server, id → transport).

    Every mutation is keyed by the session's own id, so sessions never
    touch each other's entries.
    """

    def __init__(self, router: Router, messages_path: str = Config.MESSAGES_PATH):
        self.router = router
        self.messages_path = messages_path
        self.servers: Dict[str, ProtocolServer] = {}
        self.transports: Dict[str, SseServerTransport] = {}

    @property
    def session_count(self) -> int:
        return len(self.servers)

    async def open_session(self) -> SseServerTransport:
        """Create, register and connect a fresh server/transport pair."""
        server = ProtocolServer(self.router)
        transport = SseServerTransport(self.messages_path)
        sid = transport.session_id

        server.on_error = lambda exc: self._on_error(sid, exc)
        server.on_close = lambda: self._forget(sid)

        self.transports[sid] = transport
        self.servers[sid] = server
        try:
            await server.connect(transport)
        except Exception:
            self._forget(sid)
            raise

        # Strictly after the handshake: the endpoint frame is already queued
        await transport.send({
            "type": "connection",
            "sessionId": sid,
            "server": {"name": Config.SERVER_NAME, "version": Config.SERVER_VERSION},
        })
        log.info(f"Session {sid} opened ({self.session_count} active)")
        return transport

    def _forget(self, session_id: str):
        self.servers.pop(session_id, None)
        self.transports.pop(session_id, None)

    async def close_session(self, session_id: str):
        server = self.servers.pop(session_id, None)
        self.transports.pop(session_id, None)
        if server is not None:
            await server.close()
            log.info(f"Session {session_id} closed ({self.session_count} active)")

    def _on_error(self, session_id: str, exc: Exception):
        log.error(f"Session {session_id} error: {exc}")
        transport = self.transports.get(session_id)
        if transport is None or transport.closed:
            return
        try:
            transport.push({"type": "error", "error": str(exc)})
        except ConnectionError:
            log.debug(f"Session {session_id} closed before error could be sent")

    async def handle_post(self, session_id: Optional[str], body: bytes) -> Response:
        """Route one posted message to its session."""
        try:
            request_id = request_id_of(json.loads(body))
        except ValueError:
            request_id = None

        server = self.servers.get(session_id) if session_id else None
        transport = self.transports.get(session_id) if session_id else None
        if server is None or transport is None:
            log.warning(f"POST for unknown session {session_id}")
            return JSONResponse(
                _error_envelope(
                    INVALID_PARAMS,
                    "Invalid session",
                    "No transport/server found for sessionId",
                    request_id,
                ),
                status_code=400,
            )

        res = ResponseAdapter(request_id)
        try:
            await transport.handle_post_message(body, res)
        except Exception as exc:
            log.error(f"Error handling message for {session_id}: {exc}", exc_info=True)
            if not res.headers_sent:
                return JSONResponse(
                    _error_envelope(SERVER_ERROR, "Internal server error", str(exc), request_id),
                    status_code=500,
                )
        return res.to_response()

    async def shutdown(self):
        """Close every live session."""
        for sid in list(self.servers):
            await self.close_session(sid)
        log.info("All sessions closed")


async def event_stream(manager: SseSessionManager) -> AsyncIterator[str]:
    """
    Open a session and relay its frames; closing the stream closes the session.

    Nothing is registered until the response starts iterating.
    """
    transport = await manager.open_session()
    try:
        async for frame in transport.events():
            yield frame
    finally:
        with anyio.CancelScope(shield=True):
            await manager.close_session(transport.session_id)


# ── HTTP app ─────────────────────────────────────────────────────────────────

def create_app(manager: SseSessionManager) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await manager.shutdown()

    app = FastAPI(
        title=Config.SERVER_NAME,
        version=Config.SERVER_VERSION,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.manager = manager

    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.get(Config.SSE_PATH)
    async def sse():
        return StreamingResponse(
            event_stream(manager),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.post(manager.messages_path)
    async def messages(request: Request):
        body = await request.body()
        return await manager.handle_post(request.query_params.get("sessionId"), body)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "sessions": manager.session_count,
            "tools": manager.router.tool_count,
        }

    return app


async def run_sse(router: Router, host: str = None, port: int = None):
    """Serve the multi-session HTTP surface until interrupted."""
    manager = SseSessionManager(router)
    app = create_app(manager)

    host = host or Config.HOST
    port = port or Config.PORT
    log.info(f"Starting {Config.SERVER_NAME} v{Config.SERVER_VERSION} (sse) on {host}:{port}")

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="warning",
        access_log=False,
        timeout_graceful_shutdown=3,  # open event streams never finish on their own
    )
    server = uvicorn.Server(config)
    await server.serve()
