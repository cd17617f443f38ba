"""Tests for the WebSocket transport, driven through a fake connection."""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedOK

from groundstream import ActionKind, ActionLedger, CannedAnswerGenerator, ServerConfig
from groundstream_server.server import GroundstreamServer, build_server


class FakeWebSocket:
    """Yields scripted frames, then stays open until ``until`` types were sent."""

    def __init__(self, frames, until=("response",), closed=False):
        self.frames = [json.dumps(f) if isinstance(f, dict) else f for f in frames]
        self.until = list(until)
        self.closed = closed
        self.sent = []
        self._done = asyncio.Event()

    async def send(self, text):
        if self.closed:
            raise ConnectionClosedOK(None, None)
        event = json.loads(text)
        self.sent.append(event)
        if event["type"] in self.until:
            self.until.remove(event["type"])
        if not self.until:
            self._done.set()

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            yield frame
        if self.until:
            await asyncio.wait_for(self._done.wait(), timeout=5)


def _server(corpus, **overrides):
    config = ServerConfig(**overrides)
    generator = CannedAnswerGenerator(delay_range=(0.0, 0.0), hallucination_rate=0.0)
    return GroundstreamServer(config, corpus, generator)


def test_message_round_trip(corpus):
    server = _server(corpus)

    async def scenario():
        ws = FakeWebSocket([{"type": "message", "id": "m1", "text": "Vad kostar Basic?"}])
        await server.handle_connection(ws)
        return ws.sent

    sent = asyncio.run(scenario())
    types = [e["type"] for e in sent]
    assert types[-2:] == ["stream_end", "response"]
    assert set(types[:-2]) == {"stream"}
    assert sent[-1]["text"] == "Basic kostar 99 kr/månad, Standard 199 kr, Premium 399 kr."
    assert sent[-1]["citations"]
    assert server.connections == 0


def test_hallucination_is_refused(corpus):
    server = _server(corpus)

    async def scenario():
        ws = FakeWebSocket([{"type": "message", "id": "m1", "text": "hallucinate kontakt"}])
        await server.handle_connection(ws)
        return ws.sent

    assert asyncio.run(scenario())[-1]["text"] == "Jag kan inte verifiera det."


def test_action_flow_across_connections(corpus):
    """Suggestions are server-scoped: one connection suggests, another confirms."""
    server = _server(corpus)

    async def scenario():
        ws1 = FakeWebSocket([{"type": "message", "id": "m1", "text": "Ring mig på +46 8 123 45 67"}])
        await server.handle_connection(ws1)
        suggestion = ws1.sent[0]

        ws2 = FakeWebSocket(
            [{"type": "confirm_action", "suggestionId": suggestion["suggestionId"]}],
            until=("action_executed",),
        )
        await server.handle_connection(ws2)
        return suggestion, ws2.sent

    suggestion, sent = asyncio.run(scenario())
    assert suggestion["type"] == "action_suggestion"
    assert suggestion["action"] == ActionKind.SCHEDULE_CALLBACK.value
    assert suggestion["payload"] == {"phone": "+46 8 123 45 67"}
    assert sent == [{
        "type": "action_executed",
        "suggestionId": suggestion["suggestionId"],
        "result": {
            "success": True,
            "message": "Callback scheduled to +46 8 123 45 67",
            "suggestionId": suggestion["suggestionId"],
        },
    }]


def test_malformed_frame_keeps_connection(corpus):
    server = _server(corpus)

    async def scenario():
        ws = FakeWebSocket(["garbage", {"type": "message", "id": "m1", "text": "Vad kostar Basic?"}])
        await server.handle_connection(ws)
        return ws.sent

    sent = asyncio.run(scenario())
    assert sent[0] == {"type": "error", "message": "Failed to process message"}
    assert sent[-1]["type"] == "response"


def test_closed_connection_does_not_raise(corpus):
    server = _server(corpus)

    async def scenario():
        ws = FakeWebSocket(["garbage"], until=(), closed=True)
        await server.handle_connection(ws)
        return ws.sent

    assert asyncio.run(scenario()) == []
    assert server.connections == 0


def test_sweep_forever_purges(corpus):
    server = _server(corpus, sweep_interval_s=0.01, action_max_age_s=0.0)
    server.ledger.create_suggestion(ActionKind.SEND_SMS, {})

    async def scenario():
        task = asyncio.create_task(server.sweep_forever())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert server.ledger.pending_count == 0


def test_build_server_loads_kb(kb_dir):
    server = build_server(ServerConfig(kb_dir=str(kb_dir), cooldown_s=5.0))
    assert len(server.corpus) == 3
    assert server.ledger.cooldown_s == 5.0


def test_build_server_missing_kb(tmp_path):
    with pytest.raises(FileNotFoundError):
        build_server(ServerConfig(kb_dir=str(tmp_path / "missing")))


def test_failing_action_keeps_connection(corpus):
    def executor(suggestion):
        raise RuntimeError("sms gateway down")

    server = GroundstreamServer(
        ServerConfig(),
        corpus,
        CannedAnswerGenerator(delay_range=(0.0, 0.0), hallucination_rate=0.0),
        ledger=ActionLedger(executor=executor),
    )
    suggestion = server.ledger.create_suggestion(ActionKind.SEND_SMS, {})

    async def scenario():
        ws = FakeWebSocket([
            {"type": "confirm_action", "suggestionId": suggestion.id},
            {"type": "message", "id": "m1", "text": "Vad kostar Basic?"},
        ])
        await server.handle_connection(ws)
        return ws.sent

    sent = asyncio.run(scenario())
    assert sent[0] == {"type": "error", "message": "Failed to process message"}
    assert sent[-1]["type"] == "response"
    assert server.connections == 0


def test_server_ledger_uses_configured_max_age(corpus):
    server = _server(corpus, action_max_age_s=42.0, cooldown_s=5.0)
    assert server.ledger.max_age_s == 42.0
    assert server.ledger.cooldown_s == 5.0
