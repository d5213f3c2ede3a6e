"""
Tests for the WebSocket gateway: connection registry, subscriber parsing
and the /ws/ordenes endpoint.
"""

import json
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from pos_shared.infrastructure.events import ORDER_UPDATED
from pos_shared.security.auth import sign_access_token, sign_channel_token
from pos_gateway.connection_manager import ConnectionManager
from pos_gateway.redis_subscriber import (
    RECONNECT_BASE_DELAY,
    handle_raw_message,
    run_subscriber_forever,
    validate_event_schema,
)


def _fake_ws() -> MagicMock:
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    ws.send_json = AsyncMock()
    return ws


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_connection(self):
        manager = ConnectionManager(max_connections=10)
        first, second = _fake_ws(), _fake_ws()
        await manager.connect(first, user_id=1)
        await manager.connect(second, user_id=2)

        sent = await manager.broadcast({"type": ORDER_UPDATED, "data": {"id": 3}})

        assert sent == 2
        first.send_json.assert_awaited_once_with({"type": ORDER_UPDATED, "data": {"id": 3}})
        assert manager.get_stats() == {
            "total_connections": 2,
            "users_connected": 2,
            "max_connections": 10,
        }

    @pytest.mark.asyncio
    async def test_failed_send_drops_connection(self):
        manager = ConnectionManager()
        alive, dead = _fake_ws(), _fake_ws()
        dead.send_json.side_effect = RuntimeError("socket closed")
        await manager.connect(alive, user_id=1)
        await manager.connect(dead, user_id=2)

        assert await manager.broadcast({"type": ORDER_UPDATED, "data": {}}) == 1
        assert manager.total_connections == 1

    @pytest.mark.asyncio
    async def test_connection_cap(self):
        manager = ConnectionManager(max_connections=1)
        await manager.connect(_fake_ws(), user_id=1)
        extra = _fake_ws()

        with pytest.raises(ConnectionError):
            await manager.connect(extra, user_id=2)
        extra.close.assert_awaited_once()
        assert extra.close.call_args.kwargs["code"] == 1013

    @pytest.mark.asyncio
    async def test_stale_connections_are_closed(self):
        manager = ConnectionManager(heartbeat_timeout=0.01)
        quiet, chatty = _fake_ws(), _fake_ws()
        await manager.connect(quiet, user_id=1)
        await manager.connect(chatty, user_id=2)

        time.sleep(0.02)
        manager.record_heartbeat(chatty)

        assert await manager.cleanup_stale_connections() == 1
        quiet.close.assert_awaited_once()
        assert manager.total_connections == 1

    @pytest.mark.asyncio
    async def test_shutdown_refuses_new_connections(self):
        manager = ConnectionManager()
        ws = _fake_ws()
        await manager.connect(ws, user_id=1)

        assert await manager.shutdown() == 1
        assert manager.is_shutting_down() is True
        with pytest.raises(ConnectionError):
            await manager.connect(_fake_ws(), user_id=2)


class TestSubscriber:
    @pytest.mark.parametrize(
        "payload,valid",
        [
            ({"type": ORDER_UPDATED, "data": {"id": 1}}, True),
            ({"type": "otro.evento", "data": {}}, True),
            ({"type": ORDER_UPDATED}, False),
            ({"type": "", "data": {}}, False),
            ({"type": ORDER_UPDATED, "data": [1]}, False),
            (["no", "dict"], False),
        ],
    )
    def test_validate_event_schema(self, payload, valid):
        assert validate_event_schema(payload)[0] is valid

    @pytest.mark.asyncio
    async def test_handle_raw_message(self):
        on_message = AsyncMock()
        raw = json.dumps({"type": ORDER_UPDATED, "data": {"id": 9}})

        assert await handle_raw_message(raw, on_message) is True
        on_message.assert_awaited_once_with({"type": ORDER_UPDATED, "data": {"id": 9}})

    @pytest.mark.asyncio
    async def test_bad_payloads_are_dropped(self):
        on_message = AsyncMock()
        assert await handle_raw_message("{no es json", on_message) is False
        assert await handle_raw_message('{"type": "x"}', on_message) is False
        on_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_escape(self):
        on_message = AsyncMock(side_effect=RuntimeError("boom"))
        raw = json.dumps({"type": ORDER_UPDATED, "data": {}})
        assert await handle_raw_message(raw, on_message) is False

    @pytest.mark.asyncio
    async def test_reconnect_gives_up_after_max_attempts(self):
        failing = AsyncMock(side_effect=ConnectionError("redis down"))
        with patch("pos_gateway.redis_subscriber.run_subscriber", new=failing), patch(
            "pos_gateway.redis_subscriber.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            await run_subscriber_forever(AsyncMock(), channel="ordenes", max_attempts=3)

        assert failing.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_ended_stream_waits_before_resubscribing(self):
        """A subscription that ends cleanly must not spin."""
        ended = AsyncMock(side_effect=[None, None, ConnectionError("redis down")])
        with patch("pos_gateway.redis_subscriber.run_subscriber", new=ended), patch(
            "pos_gateway.redis_subscriber.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            await run_subscriber_forever(AsyncMock(), channel="ordenes", max_attempts=1)

        assert ended.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [
            RECONNECT_BASE_DELAY,
            RECONNECT_BASE_DELAY,
        ]


@pytest.fixture
def gateway_client():
    """Gateway app with a fresh registry and no Redis subscriber."""
    from pos_gateway import main as gateway

    with patch.object(gateway, "manager", ConnectionManager()), patch.object(
        gateway, "run_subscriber_forever", new=AsyncMock()
    ):
        with TestClient(gateway.app) as client:
            yield client


class TestOrdersWebSocket:
    def test_ping_pong(self, gateway_client):
        token = sign_access_token(5, "barra@test.com", "Beto", "bartender", [])
        with gateway_client.websocket_connect(f"/ws/ordenes?token={token}") as ws:
            ws.send_text("ping")
            assert ws.receive_text() == "pong"

            stats = gateway_client.get("/ws/health").json()
            assert stats["total_connections"] == 1

    def test_channel_token_is_accepted(self, gateway_client):
        token = sign_channel_token(5, "cajero", "ordenes")
        with gateway_client.websocket_connect(f"/ws/ordenes?token={token}") as ws:
            ws.send_text('{"type":"ping"}')
            assert ws.receive_text() == "pong"

    def test_invalid_token_is_closed_with_4001(self, gateway_client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with gateway_client.websocket_connect("/ws/ordenes?token=basura"):
                pass
        assert exc.value.code == 4001

    def test_token_for_other_channel_is_closed_with_4003(self, gateway_client):
        token = sign_channel_token(5, "mesero", "otro")
        with pytest.raises(WebSocketDisconnect) as exc:
            with gateway_client.websocket_connect(f"/ws/ordenes?token={token}"):
                pass
        assert exc.value.code == 4003
