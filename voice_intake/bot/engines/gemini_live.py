"""
Gemini Live streaming engine.

Gemini Live accepts 16 kHz PCM16 input and produces 24 kHz PCM16 output natively,
so audio frames pass through without resampling. Tool calls, input/output
transcriptions and barge-in interruptions arrive on the same receive stream as the
synthesized audio.
"""

import logging
import uuid
from typing import Any, AsyncIterator, Dict, Iterator, Optional

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from voice_intake.audio.resampler import AudioFrame, parse_mime_rate
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
    BEGIN_SPEAKING_PROMPT,
    DEFAULT_AGENT_VOICE,
    DEFAULT_GEMINI_MODEL,
    LOGGER_NAME,
    OUTPUT_SAMPLE_RATE,
)
from voice_intake.errors import TransportFault
from voice_intake.models.records import ToolCall, ToolResponse

logger = logging.getLogger(LOGGER_NAME)


def gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Convert JSON-schema type names to the upper-case names Gemini expects."""
    converted: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            converted[key] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            converted[key] = {name: gemini_schema(prop) for name, prop in value.items()}
        elif key == "items" and isinstance(value, dict):
            converted[key] = gemini_schema(value)
        else:
            converted[key] = value
    return converted


class GeminiLiveEngine(StreamingEngine):
    """Streaming engine backed by the Gemini Live API."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = DEFAULT_GEMINI_MODEL,
                 client: Optional[genai.Client] = None):
        self.model = model
        self._client = client or genai.Client(api_key=api_key)
        self._session_context = None
        self.session = None
        self._closed = False
        logger.info(f"GeminiLiveEngine initialized with model: {model}")

    def _build_config(self, setup: EngineSetup) -> types.LiveConnectConfig:
        declarations = [
            {**tool, "parameters": gemini_schema(tool.get("parameters", {}))}
            for tool in setup.tools
        ]
        return types.LiveConnectConfig(
            response_modalities=["AUDIO"],
            system_instruction=types.Content(parts=[types.Part(text=setup.instructions)]),
            tools=[{"function_declarations": declarations}] if declarations else None,
            input_audio_transcription=types.AudioTranscriptionConfig(),
            output_audio_transcription=types.AudioTranscriptionConfig(),
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(
                        voice_name=setup.voice or DEFAULT_AGENT_VOICE
                    )
                )
            ),
        )

    async def connect(self, setup: EngineSetup) -> None:
        logger.info(f"Connecting to Gemini Live with model: {self.model}")
        try:
            self._session_context = self._client.aio.live.connect(
                model=self.model, config=self._build_config(setup)
            )
            self.session = await self._session_context.__aenter__()
        except Exception as e:
            self._session_context = None
            raise TransportFault(f"Failed to connect to Gemini Live: {e}") from e
        logger.info("Connected to Gemini Live")

    async def events(self) -> AsyncIterator[EngineEvent]:
        if self.session is None:
            raise TransportFault("Gemini Live session is not connected")

        # The live session is usable as soon as the connect handshake completes
        yield EngineReady()

        try:
            while not self._closed:
                received = 0
                # receive() ends after every completed turn
                async for message in self.session.receive():
                    received += 1
                    for event in self._translate(message):
                        yield event
                if received == 0:
                    logger.info("Gemini Live stream ended")
                    return
        except ConnectionClosedOK:
            logger.info("Gemini Live connection closed normally")
        except Exception as e:
            if self._closed:
                return
            raise TransportFault(f"Gemini Live receive failed: {e}") from e

    def _translate(self, message: types.LiveServerMessage) -> Iterator[EngineEvent]:
        tool_call = getattr(message, "tool_call", None)
        if tool_call and tool_call.function_calls:
            for fc in tool_call.function_calls:
                logger.info(f"Tool call received: {fc.name} ({fc.id})")
                yield EngineToolCall(ToolCall(
                    id=fc.id or str(uuid.uuid4()),
                    name=fc.name or "",
                    arguments=dict(fc.args or {}),
                ))

        content = getattr(message, "server_content", None)
        if not content:
            return

        if content.interrupted:
            yield EngineInterrupted()

        if content.output_transcription and content.output_transcription.text:
            yield EngineTranscription(content.output_transcription.text, is_user=False)
        if content.input_transcription and content.input_transcription.text:
            yield EngineTranscription(content.input_transcription.text, is_user=True)

        if content.model_turn and content.model_turn.parts:
            for part in content.model_turn.parts:
                blob = part.inline_data
                if not blob or not blob.data or not (blob.mime_type or "").startswith("audio/"):
                    continue
                try:
                    frame = AudioFrame(
                        samples=blob.data,
                        sample_rate=parse_mime_rate(blob.mime_type, OUTPUT_SAMPLE_RATE),
                    )
                except ValueError as e:
                    logger.warning(f"Dropping malformed audio chunk from Gemini: {e}")
                    continue
                yield EngineAudio(frame)

    async def _call(self, description: str, send) -> None:
        if self.session is None or self._closed:
            raise TransportFault(f"Cannot {description}: Gemini Live session is not connected")
        try:
            await send(self.session)
        except Exception as e:
            raise TransportFault(f"Failed to {description}: {e}") from e

    async def send_audio(self, frame: AudioFrame) -> None:
        await self._call("send audio", lambda session: session.send_realtime_input(
            audio=types.Blob(data=frame.samples, mime_type=frame.mime_type)
        ))

    async def send_text(self, text: str) -> None:
        await self._call("send text", lambda session: session.send_client_content(
            turns=types.Content(role="user", parts=[types.Part(text=text)]),
            turn_complete=True,
        ))

    async def send_tool_response(self, response: ToolResponse) -> None:
        await self._call("send tool response", lambda session: session.send_tool_response(
            function_responses=[types.FunctionResponse(
                id=response.id,
                name=response.name,
                response=response.payload(),
            )]
        ))

    async def begin_speaking(self) -> None:
        await self.send_text(BEGIN_SPEAKING_PROMPT)

    async def end_audio_stream(self) -> None:
        await self._call(
            "end audio stream", lambda session: session.send_realtime_input(audio_stream_end=True)
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        context, self._session_context = self._session_context, None
        self.session = None
        if context is not None:
            try:
                await context.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error closing Gemini Live session: {e}")
        logger.info("Gemini Live engine closed")
