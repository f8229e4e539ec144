"""
WebSocket client for the voice intake relay.

This module provides the client side of the relay protocol: connecting to the
relay's `/ws` endpoint, sending validated `start`/`audio`/`text`/`toolResponse`/
`stop` messages and dispatching the relay's messages to a handler coroutine.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets

from voice_intake.config.constants import LOGGER_NAME, MESSAGE_TYPE_CLOSE
from voice_intake.models.message_schemas import (
    AudioMessage,
    StartConfig,
    StartMessage,
    StopMessage,
    TextMessage,
    ToolResponseMessage,
)

logger = logging.getLogger(LOGGER_NAME)

MessageHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class RelayClient:
    """
    Client for talking to the relay over WebSocket.

    Args:
        url: WebSocket URL of the relay, e.g. ws://localhost:8000/ws
    """

    def __init__(self, url: str):
        self.url = url
        self.websocket = None

    @property
    def connected(self) -> bool:
        return self.websocket is not None

    async def connect(self) -> bool:
        """
        Establish a connection to the relay.

        Returns:
            True if connection was successful, False otherwise
        """
        try:
            self.websocket = await websockets.connect(self.url, compression=None)
            logger.info(f"Connected to relay at {self.url}")
            return True
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"Failed to connect to relay: {e}")
            return False

    async def _send(self, message) -> bool:
        if not self.websocket:
            logger.error(f"Cannot send {message.type}: Not connected")
            return False
        await self.websocket.send(message.model_dump_json(exclude_none=True))
        return True

    async def start(self, config: Optional[StartConfig] = None) -> bool:
        """Ask the relay to open the upstream engine session."""
        sent = await self._send(StartMessage(type="start", config=config))
        if sent:
            logger.info("Sent start")
        return sent

    async def send_audio(self, blob: Dict[str, str]) -> bool:
        """
        Send one encoded audio block.

        Args:
            blob: `{"data": base64 PCM16, "mimeType": ...}` as produced by `frame_to_blob`
        """
        return await self._send(
            AudioMessage(type="audio", data=blob["data"], mimeType=blob["mimeType"])
        )

    async def send_text(self, text: str) -> bool:
        return await self._send(TextMessage(type="text", text=text))

    async def send_tool_response(self, call_id: str, name: str,
                                 response: Dict[str, Any]) -> bool:
        return await self._send(
            ToolResponseMessage(type="toolResponse", id=call_id, name=name, response=response)
        )

    async def stop(self) -> bool:
        """Ask the relay to end the session."""
        sent = await self._send(StopMessage(type="stop"))
        if sent:
            logger.info("Sent stop")
        return sent

    async def close(self) -> None:
        """
        Close the WebSocket connection.
        """
        if self.websocket:
            await self.websocket.close()
            logger.info("Closed WebSocket connection")
            self.websocket = None

    async def listen(self, message_handler: MessageHandler) -> None:
        """
        Listen for messages from the relay until it sends `close` or disconnects.

        Args:
            message_handler: Coroutine called with every decoded message
        """
        if not self.websocket:
            logger.error("Cannot listen: Not connected")
            return

        try:
            async for message_data in self.websocket:
                try:
                    message = json.loads(message_data)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON from relay: {message_data[:100]}")
                    continue

                await message_handler(message)

                if message.get("type") == MESSAGE_TYPE_CLOSE:
                    logger.info("Relay closed the session")
                    await self.close()
                    break
        except websockets.exceptions.ConnectionClosed:
            logger.info("WebSocket connection closed by relay")
            self.websocket = None
