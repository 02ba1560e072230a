"""
Protocol Server — one JSON-RPC conversation over one transport

Ties together:
  Transport → Protocol → Router

Flow:
  1. Transport decodes a message and hands it to on_message
  2. The message is queued; a per-server worker handles messages in order
  3. Protocol validates JSON-RPC 2.0
  4. Router dispatches to the tool handler table
  5. The response envelope goes back out through transport.send()

handle_message() never raises: every failure becomes a JSON-RPC error
envelope (or nothing, for notifications).
"""

import asyncio
import signal
from typing import Any, Callable, Dict, Optional

from .config import Config
from .logger import get_logger
from .protocol import (
    validate_message,
    make_response,
    make_error,
    ProtocolError,
    INTERNAL_ERROR,
)
from .router import Router
from .transport import StdioTransport, Transport

log = get_logger("server")

_STOP = object()


class ProtocolServer:
    """
    Per-connection protocol server.

    Usage:
        server = ProtocolServer(router)
        await server.connect(transport)
        await server.wait_closed()
    """

    def __init__(self, router: Router):
        self.router = router
        self.transport: Optional[Transport] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_close: Optional[Callable[[], None]] = None

        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._done = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    # ── lifecycle ────────────────────────────────────────────────

    async def connect(self, transport: Transport):
        """Bind to a transport and start it."""
        if self.transport is not None:
            raise RuntimeError("Server already connected")

        self.transport = transport
        transport.on_message = self._receive
        transport.on_close = self._transport_closed
        transport.on_error = self._report_error

        self._worker = asyncio.create_task(self._process())
        await transport.start()

    async def wait_closed(self):
        """Wait until the transport has closed and queued messages are handled."""
        await self._done.wait()

    async def close(self):
        """Stop handling messages and close the transport."""
        if self._closed:
            return
        self._closed = True

        if self.transport is not None:
            try:
                await self.transport.close()
            except Exception as exc:
                log.warning(f"Transport close failed: {exc}")

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._done.set()

    # ── transport callbacks ──────────────────────────────────────

    def _receive(self, message: Any):
        if self._closed:
            log.debug("Dropping message for closed server")
            return
        self._queue.put_nowait(message)

    def _transport_closed(self):
        log.info("Transport closed — draining")
        self._queue.put_nowait(_STOP)
        if self.on_close is not None:
            self.on_close()

    def _report_error(self, exc: Exception):
        log.error(f"Protocol error: {exc}")
        if self.on_error is not None:
            try:
                self.on_error(exc)
            except Exception as hook_exc:
                log.error(f"on_error hook failed: {hook_exc}")

    # ── message handling ─────────────────────────────────────────

    async def _process(self):
        try:
            while True:
                message = await self._queue.get()
                if message is _STOP:
                    break

                response = await self.handle_message(message)
                if response is None or self.transport is None:
                    continue
                try:
                    await self.transport.send(response)
                except Exception as exc:
                    self._report_error(exc)
        finally:
            self._done.set()

    async def handle_message(self, msg: Any) -> Optional[Dict[str, Any]]:
        """Process one decoded message. Returns the response envelope, or None."""
        request_id = msg.get("id") if isinstance(msg, dict) else None
        is_notification = isinstance(msg, dict) and "method" in msg and "id" not in msg

        try:
            msg_type = validate_message(msg)

            if msg_type in ("response", "error"):
                log.debug(f"Ignoring client {msg_type} id={request_id}")
                return None

            result = await self.router.route(msg)

            # Notifications get no response
            if msg_type == "notification" or result is None:
                return None

            return make_response(request_id, result)

        except ProtocolError as exc:
            log.warning(f"Protocol error: {exc.message} (code={exc.code})")
            if is_notification:
                return None
            return make_error(request_id, exc.code, exc.message, exc.data)

        except Exception as exc:
            log.error(f"Unhandled error: {exc}", exc_info=True)
            if is_notification:
                return None
            return make_error(request_id, INTERNAL_ERROR, str(exc))


# ── single-stream mode ───────────────────────────────────────────────────────

async def run_stdio(router: Router, transport: Optional[Transport] = None):
    """Serve one session over stdio until EOF or SIGINT/SIGTERM."""
    log.info(f"Starting {Config.SERVER_NAME} v{Config.SERVER_VERSION} (stdio)")

    server = ProtocolServer(router)
    server.on_error = lambda exc: log.error(f"stdio session error: {exc}")

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            pass  # Windows, or not on the main thread

    await server.connect(transport or StdioTransport())
    log.info(f"Server ready — tools={router.tool_count}")

    closed = asyncio.create_task(server.wait_closed())
    stopped = asyncio.create_task(stop.wait())
    try:
        await asyncio.wait({closed, stopped}, return_when=asyncio.FIRST_COMPLETED)
        if stop.is_set():
            log.info("Signal received — shutting down")
    finally:
        for task in (closed, stopped):
            task.cancel()
        for sig in installed:
            loop.remove_signal_handler(sig)
        await server.close()
        log.info("Server stopped")
