import asyncio
import socket

import pytest
from unittest.mock import MagicMock

from conftest import FakeEngine, FakeWebSocket, wait_until
from voice_intake.bot.session import Session
from voice_intake.config.settings import Settings
from voice_intake.websocket_manager import WebSocketManager


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def websocket_manager(directory, records, engine):
    settings = Settings(gemini_api_key="test-key", idle_timeout_seconds=0, agent_voice="Puck")
    return WebSocketManager(settings, directory, records, engine_factory=lambda: engine)


def test_create_session_uses_settings(websocket_manager):
    session = websocket_manager.create_session(FakeWebSocket())
    assert isinstance(session, Session)
    assert session.voice == "Puck"
    assert not session.idle_timer.enabled


@pytest.mark.asyncio
async def test_handle_websocket_runs_one_session(websocket_manager, engine):
    """A connection gets its own session that ends with close"""
    websocket = FakeWebSocket()
    task = asyncio.create_task(websocket_manager.handle_websocket(websocket))
    websocket.push({"type": "start"})
    await wait_until(lambda: "open" in websocket.types())
    websocket.push({"type": "stop"})

    await task

    assert websocket.accepted
    assert websocket.types() == ["open", "close"]
    assert websocket.closed
    assert engine.closed
    assert websocket_manager.active_sessions == 0


@pytest.mark.asyncio
async def test_active_sessions_counted_while_running(websocket_manager):
    websocket = FakeWebSocket()
    task = asyncio.create_task(websocket_manager.handle_websocket(websocket))
    await wait_until(lambda: websocket.accepted)
    assert websocket_manager.active_sessions == 1

    websocket.disconnect()
    await task

    assert websocket_manager.active_sessions == 0
    # The client went away, so the relay does not close the socket itself
    assert not websocket.closed


@pytest.mark.asyncio
async def test_optimize_socket_sets_tcp_nodelay(websocket_manager):
    websocket = MagicMock()
    await websocket_manager._optimize_socket(websocket)
    websocket.client.sock.setsockopt.assert_called_once_with(
        socket.IPPROTO_TCP, socket.TCP_NODELAY, 1
    )


@pytest.mark.asyncio
async def test_optimize_socket_tolerates_errors(websocket_manager):
    websocket = MagicMock()
    websocket.client.sock.setsockopt.side_effect = OSError("not a TCP socket")
    await websocket_manager._optimize_socket(websocket)
