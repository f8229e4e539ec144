"""
WebSocket connection manager for the voice intake relay.

This module accepts audio client connections on the relay WebSocket and gives each
one its own Session, which owns the upstream streaming engine for the duration of
the call. No session state is shared between connections; the only shared
collaborators are the directory and record stores.
"""

import logging
import socket
from typing import Callable, Optional

from fastapi import WebSocket

from voice_intake.bot.engines import StreamingEngine, create_engine
from voice_intake.bot.session import Session
from voice_intake.config.constants import LOGGER_NAME
from voice_intake.config.settings import Settings
from voice_intake.services.directory_store import DirectoryStore, RecordStore

logger = logging.getLogger(LOGGER_NAME)


class WebSocketManager:
    """Creates and runs one relay Session per WebSocket connection.

    Args:
        settings: Runtime settings (engine selection, idle timeout, voice)
        directory: Directory store shared by all sessions
        records: Record store shared by all sessions
        engine_factory: Overrides engine creation, mainly for tests
    """

    def __init__(self, settings: Settings, directory: DirectoryStore, records: RecordStore,
                 engine_factory: Optional[Callable[[], StreamingEngine]] = None):
        self.settings = settings
        self.directory = directory
        self.records = records
        self.engine_factory = engine_factory or (lambda: create_engine(self.settings))
        self.active_sessions = 0

    async def _optimize_socket(self, websocket: WebSocket) -> None:
        """
        Optimize the WebSocket's underlying TCP socket for low-latency transmission.

        Args:
            websocket: The FastAPI WebSocket connection
        """
        try:
            client = websocket.client
            if hasattr(client, "sock") and client.sock is not None:
                # Disable Nagle's algorithm to send packets immediately
                client.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
                logger.info("Optimized socket: TCP_NODELAY enabled for low latency")
        except OSError as e:
            logger.warning(f"Could not optimize socket: {e}")

    def create_session(self, websocket: WebSocket) -> Session:
        return Session(
            websocket,
            engine_factory=self.engine_factory,
            directory=self.directory,
            records=self.records,
            idle_timeout=self.settings.idle_timeout_seconds,
            voice=self.settings.agent_voice,
        )

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a WebSocket connection throughout its lifecycle.

        Accepts the connection, runs a fresh Session until it reaches CLOSED and
        closes the socket afterwards if the client has not already done so.
        """
        await websocket.accept()
        await self._optimize_socket(websocket)

        session = self.create_session(websocket)
        self.active_sessions += 1
        logger.info(f"WebSocket connection established, session {session.session_id}")

        try:
            await session.run()
        finally:
            self.active_sessions -= 1
            if session.client_connected:
                try:
                    await websocket.close()
                except RuntimeError as e:
                    logger.debug(f"WebSocket already closed: {e}")
            logger.info(f"WebSocket connection closed, session {session.session_id}")
