import asyncio
import json
import logging

import pytest
from fastapi import WebSocketDisconnect

from voice_intake.bot.engines.base import EngineReady, StreamingEngine
from voice_intake.models.records import DirectoryEntry
from voice_intake.services.directory_store import (
    DirectoryStore,
    RecordStore,
    atomic_write_json,
)

DISCONNECT = object()


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class FakeWebSocket:
    """In-memory stand-in for a FastAPI WebSocket."""

    def __init__(self):
        self.incoming = asyncio.Queue()
        self.sent = []
        self.closed = False
        self.accepted = False
        self.client = None

    async def accept(self):
        self.accepted = True

    def push(self, message):
        self.incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def disconnect(self):
        self.incoming.put_nowait(DISCONNECT)

    async def receive_text(self):
        item = await self.incoming.get()
        if item is DISCONNECT:
            raise WebSocketDisconnect(code=1000)
        return item

    async def send_text(self, text):
        self.sent.append(json.loads(text))

    async def close(self, code=1000):
        self.closed = True

    def types(self):
        return [message["type"] for message in self.sent]


class FakeEngine(StreamingEngine):
    """Streaming engine double that records what the session sends upstream."""

    name = "fake"

    def __init__(self, ready=True):
        self.setup = None
        self.sent = []
        self.began_speaking = 0
        self.ended_stream = 0
        self.closed = False
        self._ready = ready
        self._events = asyncio.Queue()

    def emit(self, event):
        self._events.put_nowait(event)

    def finish(self):
        self._events.put_nowait(None)

    async def connect(self, setup):
        self.setup = setup
        if self._ready:
            self.emit(EngineReady())

    async def events(self):
        while True:
            event = await self._events.get()
            if event is None:
                return
            if isinstance(event, Exception):
                raise event
            yield event

    async def send_audio(self, frame):
        self.sent.append(("audio", frame))

    async def send_text(self, text):
        self.sent.append(("text", text))

    async def send_tool_response(self, response):
        self.sent.append(("tool_response", response))

    async def begin_speaking(self):
        self.began_speaking += 1

    async def end_audio_stream(self):
        self.ended_stream += 1

    async def close(self):
        self.closed = True
        self.finish()

    def sent_of(self, kind):
        return [value for sent_kind, value in self.sent if sent_kind == kind]


async def wait_until(predicate, timeout=2.0):
    """Poll `predicate` on the event loop until it is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def lincoln_school():
    return DirectoryEntry(
        id="school-1",
        organizationName="Lincoln School",
        locationName="Springfield",
        contactEmail="office@lincoln.example",
    )


@pytest.fixture
def directory(tmp_path, lincoln_school):
    atomic_write_json(tmp_path / "directory.json", [lincoln_school.model_dump()])
    return DirectoryStore.in_dir(tmp_path)


@pytest.fixture
def records(tmp_path):
    return RecordStore.in_dir(tmp_path)
