"""
Transports — the seam between a ProtocolServer and a byte stream

A transport delivers decoded messages through on_message, reports stream
end through on_close and stream faults through on_error. send() writes one
JSON-RPC message back to the peer.

StdioTransport reads newline-delimited JSON from stdin and writes to stdout.
NEVER pollutes stdout with logs.
"""

import asyncio
import json
import sys
from typing import Any, BinaryIO, Callable, Dict, Optional

from .logger import get_logger
from .protocol import PARSE_ERROR, make_error

log = get_logger("transport")

MessageHandler = Callable[[Any], None]


class Transport:
    """Callback-style transport interface."""

    def __init__(self):
        self.on_message: Optional[MessageHandler] = None
        self.on_close: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    async def start(self):
        raise NotImplementedError

    async def send(self, message: Dict[str, Any]):
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError

    # ── helpers for subclasses ───────────────────────────────────

    def _deliver(self, message: Any):
        if self.on_message is not None:
            self.on_message(message)

    def _error(self, exc: Exception):
        log.error(f"{type(self).__name__} error: {exc}")
        if self.on_error is not None:
            self.on_error(exc)

    def _signal_close(self):
        if self.on_close is not None:
            self.on_close()


class StdioTransport(Transport):
    """Newline-delimited JSON-RPC over stdin/stdout"""

    def __init__(
        self,
        reader: Optional[asyncio.StreamReader] = None,
        writer: Optional[BinaryIO] = None,
    ):
        super().__init__()
        self.running = False
        self._reader = reader
        self._stdout = writer
        self._read_task: Optional[asyncio.Task] = None

    async def start(self):
        """Initialize async stdin reader and direct stdout writer"""
        if self.running:
            raise RuntimeError("Transport already started")

        if self._reader is None:
            loop = asyncio.get_running_loop()
            self._reader = asyncio.StreamReader(limit=2**20)
            protocol = asyncio.StreamReaderProtocol(self._reader)
            await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)

        # Synchronous writes straight to the stdout buffer
        if self._stdout is None:
            self._stdout = sys.stdout.buffer

        self.running = True
        self._read_task = asyncio.create_task(self._read_loop())
        log.info("Transport initialized")

    async def read_message(self) -> Optional[Any]:
        """
        Read one JSON-RPC message from stdin.

        Returns the decoded message, or None on EOF. Undecodable lines are
        answered with a PARSE_ERROR response and skipped.
        """
        if not self._reader:
            raise RuntimeError("Transport not started")

        while True:
            raw_bytes = await self._reader.readline()
            if not raw_bytes:
                return None  # EOF
            if not raw_bytes.strip():
                continue

            try:
                return json.loads(raw_bytes)
            except json.JSONDecodeError as exc:
                log.error(f"JSON parse error: {exc}")
                await self.send(make_error(None, PARSE_ERROR, "Parse error", str(exc)))

    async def _read_loop(self):
        try:
            while self.running:
                message = await self.read_message()
                if message is None:
                    log.info("EOF on stdin")
                    break
                self._deliver(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._error(exc)
        finally:
            if self.running:
                self.running = False
                self._signal_close()

    async def send(self, message: Dict[str, Any]):
        """Write a JSON-RPC message to stdout"""
        if self._stdout is None:
            raise RuntimeError("Transport not started")

        raw_text = json.dumps(message, separators=(",", ":"), ensure_ascii=False) + "\n"
        self._stdout.write(raw_text.encode("utf-8"))
        self._stdout.flush()

    async def close(self):
        if not self.running:
            return
        self.running = False

        task = self._read_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._signal_close()
        log.info("Transport closed")
