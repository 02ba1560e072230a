"""Tests for the multi-session SSE transport and its HTTP surface."""

import json

import anyio
import httpx
import pytest

from okta_mcp.config import Config
from okta_mcp.sse import (
    CORS_HEADERS,
    ResponseAdapter,
    SseServerTransport,
    SseSessionManager,
    create_app,
    event_stream,
)

pytestmark = pytest.mark.anyio


async def next_frame(transport):
    """Pop the next queued SSE frame as (event, data)."""
    with anyio.fail_after(2):
        frame = await transport._frames.get()
    assert frame is not None, "stream closed"
    event_line, data_line = frame.rstrip("\n").split("\n")
    return event_line[len("event: "):], data_line[len("data: "):]


async def next_message(transport):
    event, data = await next_frame(transport)
    assert event == "message"
    return json.loads(data)


@pytest.fixture
def manager(router):
    return SseSessionManager(router)


@pytest.fixture
async def client(manager):
    app = create_app(manager)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def session(manager):
    """An open session with its endpoint and connection frames consumed."""
    transport = await manager.open_session()
    await next_frame(transport)
    await next_frame(transport)
    yield transport
    await manager.close_session(transport.session_id)


def _post(client, session_id, payload):
    body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
    return client.post(f"{Config.MESSAGES_PATH}?sessionId={session_id}", content=body)


class TestResponseAdapter:
    def test_accepted_becomes_envelope(self):
        res = ResponseAdapter(request_id=5)
        res.write_head(202).end("Accepted")
        response = res.to_response()
        assert response.status_code == 202
        assert json.loads(response.body) == {"jsonrpc": "2.0", "result": {"status": "accepted"}, "id": 5}

    def test_other_payloads_pass_through(self):
        res = ResponseAdapter()
        res.write_head(400, {"X-Test": "1"})
        res.write("Invalid ")
        res.end("message")
        response = res.to_response()
        assert response.status_code == 400
        assert response.body == b"Invalid message"
        assert response.headers["x-test"] == "1"

    def test_headers_sent_tracking(self):
        res = ResponseAdapter()
        assert not res.headers_sent
        res.write("x")
        assert res.headers_sent
        with pytest.raises(RuntimeError):
            res.write_head(500)

    def test_end_twice_rejected(self):
        res = ResponseAdapter()
        res.end()
        assert res.finished
        with pytest.raises(RuntimeError):
            res.end("again")


class TestSseServerTransport:
    async def test_start_queues_endpoint_event(self):
        transport = SseServerTransport("/messages")
        await transport.start()
        event, data = await next_frame(transport)
        assert event == "endpoint"
        assert data == f"/messages?sessionId={transport.session_id}"

    async def test_session_ids_are_unique_hex(self):
        ids = {SseServerTransport().session_id for _ in range(20)}
        assert len(ids) == 20
        assert all(len(i) == 32 and int(i, 16) >= 0 for i in ids)

    async def test_post_before_start_is_500(self):
        transport = SseServerTransport()
        res = ResponseAdapter()
        await transport.handle_post_message(b'{"jsonrpc":"2.0","id":1,"method":"ping"}', res)
        assert res.status_code == 500

    async def test_post_delivers_message(self):
        transport = SseServerTransport()
        received = []
        transport.on_message = received.append
        await transport.start()
        res = ResponseAdapter(1)
        await transport.handle_post_message(b'{"jsonrpc":"2.0","id":1,"method":"ping"}', res)
        assert res.status_code == 202
        assert received == [{"jsonrpc": "2.0", "id": 1, "method": "ping"}]

    async def test_send_after_close_fails(self):
        transport = SseServerTransport()
        await transport.start()
        await transport.close()
        with pytest.raises(ConnectionError):
            await transport.send({"jsonrpc": "2.0", "id": 1, "result": {}})

    async def test_events_end_on_close(self):
        transport = SseServerTransport()
        await transport.start()
        await transport.close()
        frames = [frame async for frame in transport.events()]
        assert len(frames) == 1
        assert frames[0].startswith("event: endpoint\n")


class TestSessionLifecycle:
    async def test_endpoint_then_connection_event(self, manager):
        transport = await manager.open_session()
        sid = transport.session_id

        event, data = await next_frame(transport)
        assert event == "endpoint"
        assert data == f"{Config.MESSAGES_PATH}?sessionId={sid}"

        connection = await next_message(transport)
        assert connection == {
            "type": "connection",
            "sessionId": sid,
            "server": {"name": Config.SERVER_NAME, "version": Config.SERVER_VERSION},
        }

        assert manager.servers[sid] is not None
        assert manager.transports[sid] is transport
        await manager.close_session(sid)

    async def test_close_removes_both_entries(self, manager):
        transport = await manager.open_session()
        sid = transport.session_id
        await manager.close_session(sid)
        assert sid not in manager.servers
        assert sid not in manager.transports
        assert transport.closed

    async def test_stream_close_tears_down_session(self, manager):
        stream = event_stream(manager)
        first = await stream.__anext__()
        assert first.startswith("event: endpoint\n")
        assert manager.session_count == 1
        (transport,) = manager.transports.values()

        await stream.aclose()
        assert manager.session_count == 0
        assert not manager.transports
        assert transport.closed

    async def test_unstarted_stream_registers_nothing(self, manager):
        stream = event_stream(manager)
        assert manager.session_count == 0
        assert not manager.transports
        await stream.aclose()
        assert manager.session_count == 0

    async def test_shutdown_closes_everything(self, manager):
        transports = [await manager.open_session() for _ in range(3)]
        assert manager.session_count == 3
        await manager.shutdown()
        assert manager.session_count == 0
        assert not manager.transports
        assert all(t.closed for t in transports)


class TestMessagesEndpoint:
    async def test_post_is_accepted_and_answered_on_stream(self, client, session, router):
        resp = await _post(client, session.session_id, {"jsonrpc": "2.0", "id": 11, "method": "tools/list"})
        assert resp.status_code == 202
        assert resp.json() == {"jsonrpc": "2.0", "result": {"status": "accepted"}, "id": 11}

        message = await next_message(session)
        assert message["id"] == 11
        assert message["result"]["tools"] == router.list_tools()

    async def test_tool_call_round_trip(self, client, session):
        await _post(client, session.session_id, {
            "jsonrpc": "2.0", "id": "c1", "method": "tools/call",
            "params": {"name": "echo", "arguments": {"text": "over sse"}},
        })
        message = await next_message(session)
        assert message["id"] == "c1"
        assert json.loads(message["result"]["content"][0]["text"]) == {"echo": {"text": "over sse"}}

    async def test_tool_error_on_stream(self, client, session):
        await _post(client, session.session_id, {
            "jsonrpc": "2.0", "id": 3, "method": "tools/call",
            "params": {"name": "two_required", "arguments": {}},
        })
        message = await next_message(session)
        assert message["error"]["code"] == -32602
        assert message["error"]["message"] == "Missing required parameter: first"

    async def test_unknown_session(self, client):
        resp = await _post(client, "deadbeef", {"jsonrpc": "2.0", "id": 4, "method": "ping"})
        assert resp.status_code == 400
        assert resp.json() == {
            "jsonrpc": "2.0",
            "error": {
                "code": -32602,
                "message": "Invalid session",
                "data": "No transport/server found for sessionId",
            },
            "id": 4,
        }

    async def test_missing_session_id(self, client):
        resp = await client.post(Config.MESSAGES_PATH, content=b'{"jsonrpc":"2.0","id":1,"method":"ping"}')
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Invalid session"

    async def test_closed_session_is_invalid(self, client, manager):
        transport = await manager.open_session()
        sid = transport.session_id
        await manager.close_session(sid)

        resp = await _post(client, sid, {"jsonrpc": "2.0", "id": 5, "method": "ping"})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Invalid session"

    async def test_undecodable_body(self, client, session):
        resp = await _post(client, session.session_id, b"{broken")
        assert resp.status_code == 400
        assert resp.text.startswith("Invalid message")

        event, data = await next_frame(session)
        assert event == "message"
        assert json.loads(data)["type"] == "error"

    async def test_sessions_are_isolated(self, client, manager):
        a = await manager.open_session()
        b = await manager.open_session()
        for t in (a, b):
            await next_frame(t)
            await next_frame(t)

        resp = await _post(client, b.session_id, {"jsonrpc": "2.0", "id": 1, "method": "ping"})
        assert resp.status_code == 202
        assert (await next_message(b))["id"] == 1
        assert a._frames.empty()

        await manager.close_session(a.session_id)
        assert b.session_id in manager.servers
        resp = await _post(client, b.session_id, {"jsonrpc": "2.0", "id": 2, "method": "ping"})
        assert resp.status_code == 202
        await manager.close_session(b.session_id)

    async def test_internal_error_before_headers(self, client, session):
        async def boom(body, res):
            raise RuntimeError("handler crashed")

        session.handle_post_message = boom
        resp = await _post(client, session.session_id, {"jsonrpc": "2.0", "id": 8, "method": "ping"})
        assert resp.status_code == 500
        assert resp.json() == {
            "jsonrpc": "2.0",
            "error": {"code": -32000, "message": "Internal server error", "data": "handler crashed"},
            "id": 8,
        }

    async def test_internal_error_after_headers_keeps_response(self, client, session):
        async def late_boom(body, res):
            res.write_head(202).end("Accepted")
            raise RuntimeError("after the fact")

        session.handle_post_message = late_boom
        resp = await _post(client, session.session_id, {"jsonrpc": "2.0", "id": 9, "method": "ping"})
        assert resp.status_code == 202
        assert resp.json()["result"] == {"status": "accepted"}


class TestHttpSurface:
    async def test_preflight(self, client):
        resp = await client.options(Config.MESSAGES_PATH)
        assert resp.status_code == 200
        assert resp.content == b""
        for name, value in CORS_HEADERS.items():
            assert resp.headers[name] == value

    async def test_cors_on_regular_responses(self, client):
        resp = await client.get("/health")
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

    async def test_health(self, client, manager, session):
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok", "sessions": 1, "tools": manager.router.tool_count}
