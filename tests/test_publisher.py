# tests/test_publisher.py

"""
Connection Manager Tests - fan-out to WebSockets, dropped connections
"""

import asyncio

from fastapi import WebSocketDisconnect
from fastapi.websockets import WebSocketState

from signal_engine.models.analysis import empty_analysis
from signal_engine.services.publisher import ConnectionManager


class FakeSocket:
    def __init__(self, error=None, state=WebSocketState.CONNECTED):
        self.client_state = state
        self.error = error
        self.sent = []

    async def send_json(self, payload):
        if self.error is not None:
            raise self.error
        self.sent.append(payload)


class TestConnectionManager:

    def test_publish_reaches_every_socket(self):
        manager = ConnectionManager()
        first, second = FakeSocket(), FakeSocket()
        manager.connect("call-1", first)
        manager.connect("call-1", second)

        asyncio.run(manager.publish("call-1", empty_analysis(session_id="call-1", sequence=1)))

        for socket in (first, second):
            assert socket.sent[0]["type"] == "analysis"
            assert socket.sent[0]["data"]["sequence"] == 1

    def test_client_gone_mid_send_is_dropped(self):
        manager = ConnectionManager()
        gone = FakeSocket(error=WebSocketDisconnect(code=1006))
        alive = FakeSocket()
        manager.connect("call-1", gone)
        manager.connect("call-1", alive)

        asyncio.run(manager.publish("call-1", empty_analysis(session_id="call-1", sequence=1)))
        gone.error = None
        asyncio.run(manager.publish("call-1", empty_analysis(session_id="call-1", sequence=2)))

        assert gone.sent == []
        assert [p["data"]["sequence"] for p in alive.sent] == [1, 2]

    def test_closed_socket_is_skipped(self):
        manager = ConnectionManager()
        closed = FakeSocket(state=WebSocketState.DISCONNECTED)
        manager.connect("call-1", closed)

        asyncio.run(manager.publish("call-1", empty_analysis(session_id="call-1")))
        assert closed.sent == []

    def test_publish_without_listeners(self):
        asyncio.run(ConnectionManager().publish("nobody", empty_analysis(session_id="nobody")))

    def test_disconnect_unknown_session(self):
        ConnectionManager().disconnect("nobody", FakeSocket())
