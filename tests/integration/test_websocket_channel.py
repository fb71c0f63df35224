"""Integration tests for the Starlette WebSocket channel.

The panel core runs inside a websocket route; the TestClient plays the host.
"""

from __future__ import annotations

import asyncio

from starlette.applications import Starlette
from starlette.routing import WebSocketRoute
from starlette.testclient import TestClient
from starlette.websockets import WebSocket

from panel_bridge import BridgeConfig, MessageType, RemoteError, RequestOrchestrator
from panel_bridge.transport.websocket import WebSocketChannel


def make_app(results: list) -> Starlette:
    async def panel(websocket: WebSocket) -> None:
        await websocket.accept()
        channel = WebSocketChannel(websocket)
        orchestrator = RequestOrchestrator(channel, BridgeConfig(default_timeout=5.0))

        async def drive() -> None:
            try:
                results.append(("ok", await orchestrator.call(MessageType.LOAD_REPOSITORIES)))
            except RemoteError as e:
                results.append(("error", e.message))
            orchestrator.notify(MessageType.SHOW_SUCCESS, {"message": "done"})

        task = asyncio.create_task(drive())
        await channel.run()
        task.cancel()
        orchestrator.close()

    return Starlette(routes=[WebSocketRoute("/panel", panel)])


class TestWebSocketChannel:
    def test_call_round_trip(self):
        results: list = []
        client = TestClient(make_app(results))

        with client.websocket_connect("/panel") as ws:
            request = ws.receive_json()
            assert request["type"] == "loadRepositories"

            ws.send_json(request)  # reflected copy is ignored
            ws.send_text("not json")
            ws.send_json(
                {
                    "type": "loadRepositories",
                    "correlationId": request["correlationId"],
                    "payload": {"repositories": ["a", "b"]},
                }
            )

            notification = ws.receive_json()
            assert notification["type"] == "showSuccess"
            assert notification["payload"] == {"message": "done"}

        assert results == [("ok", {"repositories": ["a", "b"]})]

    def test_call_error(self):
        results: list = []
        client = TestClient(make_app(results))

        with client.websocket_connect("/panel") as ws:
            request = ws.receive_json()
            ws.send_json(
                {
                    "type": "loadRepositories",
                    "correlationId": request["correlationId"],
                    "error": "no credentials",
                }
            )
            assert ws.receive_json()["type"] == "showSuccess"

        assert results == [("error", "no credentials")]
