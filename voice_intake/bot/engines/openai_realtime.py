"""
OpenAI Realtime streaming engine.

Speaks the Realtime API JSON event protocol over a WebSocket: `session.update`
carries the instructions and tool declarations, caller audio is appended to the
input buffer at 24 kHz, and server events are translated into engine events.
"""

import asyncio
import base64
import json
import logging
import time
import uuid
from typing import Any, AsyncIterator, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from voice_intake.audio.resampler import (
    AudioFrame,
    decode_pcm16,
    float_to_pcm16,
    upsample,
)
from voice_intake.bot.engines.base import (
    EngineAudio,
    EngineEvent,
    EngineInterrupted,
    EngineReady,
    EngineSetup,
    EngineToolCall,
    EngineTranscription,
    StreamingEngine,
)
from voice_intake.config.constants import (
    DEFAULT_OPENAI_REALTIME_MODEL,
    LOGGER_NAME,
    OPENAI_SAMPLE_RATE,
)
from voice_intake.errors import DecodeFault, TransportFault
from voice_intake.models.records import ToolCall, ToolResponse

logger = logging.getLogger(LOGGER_NAME)

REALTIME_API_URL = "wss://api.openai.com/v1/realtime"
CONNECTION_TIMEOUT = 30  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32  # Small queue to prevent buffering
WS_PING_INTERVAL = 5  # 5 seconds between pings

OPENAI_VOICES = ("alloy", "ash", "ballad", "coral", "echo", "sage", "shimmer", "verse")
DEFAULT_OPENAI_VOICE = "alloy"

AUDIO_DELTA_EVENTS = ("response.audio.delta", "response.output_audio.delta")
TRANSCRIPT_DELTA_EVENTS = (
    "response.audio_transcript.delta",
    "response.output_audio_transcript.delta",
)


class OpenAIRealtimeEngine(StreamingEngine):
    """
    Streaming engine backed by the OpenAI Realtime API over WebSocket.

    The Realtime API works at 24 kHz in both directions, so 16 kHz caller frames
    are upsampled before they are appended to the input buffer.
    """

    name = "openai"

    def __init__(self, api_key: str, model: str = DEFAULT_OPENAI_REALTIME_MODEL):
        self.api_key = api_key
        self.model = model
        self.ws = None
        self._ready = False
        self._closed = False
        logger.info(f"OpenAIRealtimeEngine initialized with model: {model}")

    def _session_config(self, setup: EngineSetup) -> Dict[str, Any]:
        voice = setup.voice if setup.voice in OPENAI_VOICES else DEFAULT_OPENAI_VOICE
        return {
            "modalities": ["audio", "text"],
            "instructions": setup.instructions,
            "voice": voice,
            "input_audio_format": "pcm16",
            "output_audio_format": "pcm16",
            "input_audio_transcription": {"model": "whisper-1"},
            "turn_detection": {"type": "server_vad"},
            "tools": [{"type": "function", **tool} for tool in setup.tools],
            "tool_choice": "auto",
        }

    async def connect(self, setup: EngineSetup) -> None:
        """
        Connect to the OpenAI Realtime WebSocket endpoint and configure the session.

        Raises:
            TransportFault: The connection could not be established
        """
        url = f"{REALTIME_API_URL}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
        connection_start = time.time()
        try:
            # No compression, small queue: audio latency matters more than bandwidth
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=10,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            raise TransportFault(
                f"Timeout while connecting to OpenAI Realtime API (after {CONNECTION_TIMEOUT}s)"
            ) from e
        except (OSError, websockets.exceptions.WebSocketException) as e:
            raise TransportFault(f"Failed to connect to OpenAI Realtime API: {e}") from e
        logger.debug(f"WebSocket connection established in {time.time() - connection_start:.2f} seconds")

        await self._send({"type": "session.update", "session": self._session_config(setup)})

    async def events(self) -> AsyncIterator[EngineEvent]:
        if self.ws is None:
            raise TransportFault("OpenAI Realtime connection is not open")
        try:
            async for message in self.ws:
                if isinstance(message, bytes):
                    logger.debug(f"Ignoring binary frame of {len(message)} bytes")
                    continue
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON: {message[:100]}...")
                    continue
                event = self._translate(data)
                if event is not None:
                    yield event
        except ConnectionClosedOK:
            logger.info("OpenAI Realtime connection closed normally")
        except ConnectionClosed as e:
            if not self._closed:
                raise TransportFault(f"OpenAI Realtime connection closed unexpectedly: {e}") from e

    def _translate(self, data: Dict[str, Any]) -> Optional[EngineEvent]:
        event_type = data.get("type", "")

        if event_type in ("session.created", "session.updated"):
            if event_type == "session.updated" and not self._ready:
                self._ready = True
                return EngineReady()
            return None

        if event_type in AUDIO_DELTA_EVENTS:
            try:
                raw = base64.b64decode(data.get("delta", ""), validate=True)
                return EngineAudio(AudioFrame(samples=raw, sample_rate=OPENAI_SAMPLE_RATE))
            except ValueError as e:
                logger.warning(f"Dropping undecodable audio delta: {e}")
                return None

        if event_type in TRANSCRIPT_DELTA_EVENTS and data.get("delta"):
            return EngineTranscription(data["delta"], is_user=False)

        if event_type == "conversation.item.input_audio_transcription.completed":
            if data.get("transcript"):
                return EngineTranscription(data["transcript"], is_user=True)
            return None

        if event_type == "input_audio_buffer.speech_started":
            return EngineInterrupted()

        if event_type == "response.function_call_arguments.done":
            try:
                arguments = json.loads(data.get("arguments") or "{}")
            except json.JSONDecodeError:
                logger.warning(f"Tool call {data.get('call_id')} has invalid JSON arguments")
                arguments = {}
            return EngineToolCall(ToolCall(
                id=data.get("call_id") or str(uuid.uuid4()),
                name=data.get("name", ""),
                arguments=arguments if isinstance(arguments, dict) else {},
            ))

        if event_type == "error":
            # Logged only; the Realtime API keeps the session alive after most errors
            logger.error(f"Received error from OpenAI: {data.get('error')}")
            return None

        logger.debug(f"Received message of type: {event_type or 'unknown'}")
        return None

    async def _send(self, payload: Dict[str, Any]) -> None:
        if self.ws is None or self._closed:
            raise TransportFault("OpenAI Realtime connection is not open")
        try:
            await self.ws.send(json.dumps(payload))
        except ConnectionClosed as e:
            raise TransportFault(f"Connection closed while sending {payload.get('type')}: {e}") from e

    async def send_audio(self, frame: AudioFrame) -> None:
        try:
            samples = decode_pcm16(frame.samples)
        except DecodeFault as e:
            logger.warning(f"Dropping audio frame: {e}")
            return
        pcm = float_to_pcm16(upsample(samples, frame.sample_rate, OPENAI_SAMPLE_RATE))
        await self._send({
            "type": "input_audio_buffer.append",
            "audio": base64.b64encode(pcm).decode("utf-8"),
        })

    async def send_text(self, text: str) -> None:
        await self._send({
            "type": "conversation.item.create",
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": text}],
            },
        })
        await self._send({"type": "response.create"})

    async def send_tool_response(self, response: ToolResponse) -> None:
        await self._send({
            "type": "conversation.item.create",
            "item": {
                "type": "function_call_output",
                "call_id": response.id,
                "output": json.dumps(response.payload()),
            },
        })
        await self._send({"type": "response.create"})

    async def begin_speaking(self) -> None:
        await self._send({"type": "response.create"})

    async def end_audio_stream(self) -> None:
        """Commit whatever caller audio is still in the input buffer."""
        await self._send({"type": "input_audio_buffer.commit"})

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self._closed:
            return
        self._closed = True
        ws, self.ws = self.ws, None
        if ws is not None:
            logger.debug("Closing WebSocket connection")
            try:
                await ws.close()
            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.warning(f"Error closing OpenAI Realtime connection: {e}")
        logger.info("OpenAI Realtime engine closed")
