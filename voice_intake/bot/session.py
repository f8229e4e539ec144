"""
Relay session: one per client connection.

A Session bridges one audio client WebSocket and one exclusively owned upstream
streaming engine. All work for the session is serialized through a single inbox
queue fed by the client reader, the engine pump, tool-call tasks and the idle
watchdog, so state transitions happen in one place and in arrival order. Sends
to the engine go through a second ordered outbox drained by a sender task.

States:
    IDLE -> CONNECTING -> OPEN -> STREAMING -> CLOSING -> CLOSED
    ERROR is reachable from every state before CLOSING and always leads to CLOSING.
"""

import asyncio
import json
import logging
import time
import uuid
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from voice_intake.audio.resampler import AudioFrame, frame_to_blob
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
from voice_intake.bot.idle_timer import IdleTimer
from voice_intake.bot.instructions import build_instructions, submit_record_tool
from voice_intake.bot.tool_router import ToolCallRouter
from voice_intake.config.constants import (
    DEFAULT_AGENT_VOICE,
    DEFAULT_IDLE_TIMEOUT_SECONDS,
    LOGGER_NAME,
    MESSAGE_TYPE_AUDIO,
)
from voice_intake.errors import (
    InvalidStateTransition,
    MalformedMessage,
    RelayError,
    TransportFault,
)
from voice_intake.handlers import MESSAGE_HANDLERS, HandlerFunc
from voice_intake.models.message_schemas import (
    AudioMessage,
    BaseMessage,
    CloseMessage,
    ErrorMessage,
    InterruptedMessage,
    OpenMessage,
    SickNoteMessage,
    StartConfig,
    ToolCallMessage,
    TranscriptionMessage,
)
from voice_intake.models.records import (
    StructuredRecord,
    ToolCall,
    ToolResponse,
    TranscriptEvent,
    utc_now_iso,
)
from voice_intake.services.directory_store import DirectoryStore, RecordStore

logger = logging.getLogger(LOGGER_NAME)


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"
    ERROR = "error"


ALLOWED_TRANSITIONS: Dict[SessionState, Set[SessionState]] = {
    SessionState.IDLE: {SessionState.CONNECTING, SessionState.CLOSING, SessionState.ERROR},
    SessionState.CONNECTING: {SessionState.OPEN, SessionState.CLOSING, SessionState.ERROR},
    SessionState.OPEN: {SessionState.STREAMING, SessionState.CLOSING, SessionState.ERROR},
    SessionState.STREAMING: {SessionState.CLOSING, SessionState.ERROR},
    SessionState.ERROR: {SessionState.CLOSING},
    SessionState.CLOSING: {SessionState.CLOSED},
    SessionState.CLOSED: set(),
}

FORWARDING_STATES = (SessionState.OPEN, SessionState.STREAMING)
FINISHING_STATES = (SessionState.CLOSING, SessionState.CLOSED)

# Inbox item kinds
CLIENT_MESSAGE = "client_message"
CLIENT_DISCONNECTED = "client_disconnected"
ENGINE_EVENT = "engine_event"
ENGINE_CLOSED = "engine_closed"
FAULT = "fault"
TOOL_RESULT = "tool_result"
RECORD_SAVED = "record_saved"
IDLE_TIMEOUT = "idle_timeout"

EngineFactory = Callable[[], StreamingEngine]


class Session:
    """
    Relay session for one call.

    Args:
        websocket: Accepted client WebSocket
        engine_factory: Creates the upstream engine when the client sends `start`;
            raises CredentialMissing when the engine cannot be configured
        directory: Directory store read for the instructions and by the tool router
        records: Record store the tool router persists to
        idle_timeout: Seconds without traffic before the session closes (0 disables)
        voice: Voice name handed to the engine
    """

    def __init__(
        self,
        websocket: WebSocket,
        engine_factory: EngineFactory,
        directory: DirectoryStore,
        records: RecordStore,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        voice: str = DEFAULT_AGENT_VOICE,
        handlers: Optional[Dict[str, HandlerFunc]] = None,
    ):
        self.session_id = uuid.uuid4().hex
        self.created_at = utc_now_iso()
        self.last_activity = time.monotonic()
        self.state = SessionState.IDLE
        self.websocket = websocket
        self.client_connected = True
        self.engine: Optional[StreamingEngine] = None
        self.directory = directory
        self.voice = voice
        self.transcript: List[TranscriptEvent] = []
        self.handlers = handlers if handlers is not None else MESSAGE_HANDLERS
        self.router = ToolCallRouter(directory, records, on_record=self._on_record)

        self._engine_factory = engine_factory
        self._engine_ready = False
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._reader_task: Optional[asyncio.Task] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._sender_task: Optional[asyncio.Task] = None
        self._tool_tasks: Set[asyncio.Task] = set()
        self._responded: Set[str] = set()
        self.idle_timer = IdleTimer(idle_timeout, self._on_idle)

    def __repr__(self) -> str:
        return f"Session(id={self.session_id}, state={self.state.value})"

    @property
    def forwarding(self) -> bool:
        """Whether traffic is relayed in the current state."""
        return self.state in FORWARDING_STATES

    def transition(self, new_state: SessionState) -> None:
        """
        Move to `new_state`.

        Raises:
            InvalidStateTransition: `new_state` is not reachable from the current state
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(
                f"Session {self.session_id}: {self.state.value} -> {new_state.value} is not allowed"
            )
        logger.info(f"Session {self.session_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def touch(self) -> None:
        """Record activity and restart the idle countdown."""
        self.last_activity = time.monotonic()
        self.idle_timer.reset()

    async def run(self) -> None:
        """Relay messages until the session reaches CLOSED."""
        self._reader_task = asyncio.create_task(self._read_client())
        self.touch()
        try:
            while self.state not in FINISHING_STATES:
                kind, payload = await self._inbox.get()
                try:
                    await self._dispatch(kind, payload)
                except InvalidStateTransition as e:
                    logger.error(str(e))
                except RelayError as e:
                    if e.fatal:
                        await self.fail(e)
                    else:
                        logger.warning(f"Session {self.session_id}: {e}")
        finally:
            await self.close("session ended")
            if self._reader_task is not None:
                self._reader_task.cancel()

    async def _dispatch(self, kind: str, payload: Any) -> None:
        if kind == CLIENT_MESSAGE:
            await self._handle_client_message(payload)
        elif kind == ENGINE_EVENT:
            await self._handle_engine_event(payload)
        elif kind == TOOL_RESULT:
            self.respond_upstream(payload)
        elif kind == RECORD_SAVED:
            await self.send_downstream(SickNoteMessage(data=payload))
        elif kind == FAULT:
            raise payload
        elif kind == CLIENT_DISCONNECTED:
            self.client_connected = False
            await self.close("client disconnected")
        elif kind == ENGINE_CLOSED:
            await self.close("upstream closed")
        elif kind == IDLE_TIMEOUT:
            await self.close("idle timeout")

    # Client side

    async def _read_client(self) -> None:
        try:
            while True:
                text = await self.websocket.receive_text()
                await self._inbox.put((CLIENT_MESSAGE, text))
        except WebSocketDisconnect:
            await self._inbox.put((CLIENT_DISCONNECTED, None))
        except RuntimeError as e:
            # Starlette raises RuntimeError once the socket is no longer connected
            logger.debug(f"Session {self.session_id} reader stopped: {e}")
            await self._inbox.put((CLIENT_DISCONNECTED, None))

    async def _handle_client_message(self, text: str) -> None:
        self.touch()
        try:
            message = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedMessage(f"Client sent invalid JSON: {e}") from e
        if not isinstance(message, dict):
            raise MalformedMessage("Client message is not a JSON object")

        message_type = message.get("type")
        handler = self.handlers.get(message_type)
        if handler is None:
            logger.warning(f"Unknown message type received: {message_type}")
            return
        if message_type != MESSAGE_TYPE_AUDIO:
            logger.info(f"Session {self.session_id} received {message_type}")
        await handler(message, self)

    async def send_downstream(self, message: BaseMessage) -> None:
        """
        Send a message to the client.

        Raises:
            TransportFault: The client connection is gone
        """
        if not self.client_connected or self.state == SessionState.CLOSED:
            return
        try:
            await self.websocket.send_text(message.model_dump_json())
        except (WebSocketDisconnect, RuntimeError) as e:
            self.client_connected = False
            raise TransportFault(f"Failed to send {message.type} to client: {e}") from e
        self.touch()

    # Operations used by the message handlers

    async def start(self, config: Optional[StartConfig] = None) -> None:
        """
        Open the upstream engine connection.

        Raises:
            CredentialMissing: The engine has no credential; the session never
                enters CONNECTING
        """
        if self.state != SessionState.IDLE:
            logger.warning(f"Session {self.session_id} ignoring start in state {self.state.value}")
            return

        self.engine = self._engine_factory()
        entries = await self.directory.list_entries()
        setup = EngineSetup(
            instructions=build_instructions(entries, config),
            tools=[submit_record_tool()],
            voice=self.voice,
        )
        self.transition(SessionState.CONNECTING)
        self._pump_task = asyncio.create_task(self._pump_engine(setup))
        self._sender_task = asyncio.create_task(self._send_upstream())

    def forward_audio(self, frame: AudioFrame) -> None:
        if not self.forwarding:
            logger.debug(f"Session {self.session_id} dropping audio in state {self.state.value}")
            return
        if self.state == SessionState.OPEN:
            self.transition(SessionState.STREAMING)
        self._enqueue_upstream(partial(self.engine.send_audio, frame))

    def forward_text(self, text: str) -> None:
        if not self.forwarding:
            logger.warning(f"Session {self.session_id} dropping text in state {self.state.value}")
            return
        self._enqueue_upstream(partial(self.engine.send_text, text))

    def respond_upstream(self, response: ToolResponse) -> None:
        """Queue the answer to a tool call. Only the first answer per id is sent."""
        if response.id in self._responded:
            logger.warning(f"Tool call {response.id} already answered, dropping duplicate response")
            return
        if not self.forwarding:
            logger.warning(
                f"Session {self.session_id} not forwarding, tool response {response.id} dropped"
            )
            return
        self._responded.add(response.id)
        logger.info(f"Answering tool call {response.id} with {response.result}")
        self._enqueue_upstream(partial(self.engine.send_tool_response, response))

    async def fail(self, error: RelayError) -> None:
        """Report a fatal error to the client once, then close."""
        if self.state in FINISHING_STATES or self.state == SessionState.ERROR:
            logger.warning(f"Session {self.session_id} error while {self.state.value}: {error}")
            return
        logger.error(f"Session {self.session_id} failed: {error}")
        self.transition(SessionState.ERROR)
        try:
            await self.send_downstream(ErrorMessage(message=error.client_message))
        except TransportFault as e:
            logger.warning(f"Could not report error to client: {e}")
        await self.close("error")

    async def close(self, reason: str) -> None:
        """
        Tear the session down.

        Stops the idle timer and the upstream sender, waits for records that are
        already being persisted, ends the upstream audio stream, releases the engine
        and tells the client. Safe to call more than once.
        """
        if self.state in FINISHING_STATES:
            return
        self.transition(SessionState.CLOSING)
        logger.info(f"Session {self.session_id} closing: {reason}")

        self.idle_timer.cancel()
        if self._sender_task is not None:
            self._sender_task.cancel()

        if self._tool_tasks:
            logger.info(f"Waiting for {len(self._tool_tasks)} tool call(s) to finish")
            await asyncio.wait(set(self._tool_tasks))

        if self.engine is not None:
            if self._engine_ready:
                try:
                    await self.engine.end_audio_stream()
                except TransportFault as e:
                    logger.debug(f"Could not end upstream audio stream: {e}")
            await self.engine.close()
        if self._pump_task is not None:
            self._pump_task.cancel()

        # Records saved while closing are still reported
        while not self._inbox.empty():
            kind, payload = self._inbox.get_nowait()
            if kind == RECORD_SAVED:
                await self._send_quietly(SickNoteMessage(data=payload))

        await self._send_quietly(CloseMessage())
        self.transition(SessionState.CLOSED)
        logger.info(f"Session {self.session_id} closed")

    async def _send_quietly(self, message: BaseMessage) -> None:
        try:
            await self.send_downstream(message)
        except TransportFault as e:
            logger.debug(f"Client gone, {message.type} not delivered: {e}")

    # Engine side

    async def _pump_engine(self, setup: EngineSetup) -> None:
        try:
            await self.engine.connect(setup)
            async for event in self.engine.events():
                await self._inbox.put((ENGINE_EVENT, event))
        except RelayError as e:
            await self._inbox.put((FAULT, e))
        except Exception as e:
            logger.exception(f"Unexpected error in engine pump for session {self.session_id}")
            await self._inbox.put((FAULT, TransportFault(f"Engine failed: {e}")))
        else:
            await self._inbox.put((ENGINE_CLOSED, None))

    def _enqueue_upstream(self, send: Callable[[], Any]) -> None:
        self._outbox.put_nowait(send)

    async def _send_upstream(self) -> None:
        while True:
            send = await self._outbox.get()
            try:
                await send()
            except RelayError as e:
                await self._inbox.put((FAULT, e))
                return

    async def _handle_engine_event(self, event: EngineEvent) -> None:
        if isinstance(event, EngineReady):
            if self.state != SessionState.CONNECTING:
                logger.debug(f"Ignoring engine ready in state {self.state.value}")
                return
            self._engine_ready = True
            self.transition(SessionState.OPEN)
            await self.send_downstream(OpenMessage())
            self._enqueue_upstream(self.engine.begin_speaking)
            return

        if not self.forwarding:
            logger.debug(f"Dropping {type(event).__name__} in state {self.state.value}")
            return

        if isinstance(event, EngineAudio):
            if self.state == SessionState.OPEN:
                self.transition(SessionState.STREAMING)
            blob = frame_to_blob(event.frame)
            await self.send_downstream(AudioMessage(type="audio", data=blob["data"],
                                                    mimeType=blob["mimeType"]))
        elif isinstance(event, EngineTranscription):
            self.transcript.append(TranscriptEvent(
                text=event.text, speaker="user" if event.is_user else "agent"
            ))
            await self.send_downstream(TranscriptionMessage(text=event.text, isUser=event.is_user))
        elif isinstance(event, EngineToolCall):
            call = event.call
            logger.info(f"Tool call {call.id}: {call.name}")
            await self.send_downstream(ToolCallMessage(id=call.id, name=call.name, args=call.arguments))
            if self.router.owns(call):
                self._start_tool_call(call)
        elif isinstance(event, EngineInterrupted):
            logger.info(f"Session {self.session_id} interrupted by caller")
            await self.send_downstream(InterruptedMessage())

    def _start_tool_call(self, call: ToolCall) -> None:
        task = asyncio.create_task(self._run_tool_call(call))
        self._tool_tasks.add(task)
        task.add_done_callback(self._tool_tasks.discard)

    async def _run_tool_call(self, call: ToolCall) -> None:
        response = await self.router.handle(call)
        if response is not None:
            await self._inbox.put((TOOL_RESULT, response))

    async def _on_record(self, record: StructuredRecord) -> None:
        await self._inbox.put((RECORD_SAVED, record))

    def _on_idle(self) -> None:
        self._inbox.put_nowait((IDLE_TIMEOUT, None))
