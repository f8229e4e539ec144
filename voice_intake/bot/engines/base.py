"""
Streaming engine interface.

A streaming engine is the upstream conversational-AI connection owned by exactly
one relay session. Engines translate between the relay's engine-neutral events
and their own wire protocol, so the session state machine never needs to know
which backend it is talking to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Union

from voice_intake.audio.resampler import AudioFrame
from voice_intake.models.records import ToolCall, ToolResponse


@dataclass(frozen=True)
class EngineSetup:
    """Everything the engine needs when the call starts."""

    instructions: str
    tools: List[Dict[str, Any]] = field(default_factory=list)
    voice: str = ""


@dataclass(frozen=True)
class EngineReady:
    """The upstream engine accepted the session."""


@dataclass(frozen=True)
class EngineAudio:
    frame: AudioFrame


@dataclass(frozen=True)
class EngineTranscription:
    text: str
    is_user: bool


@dataclass(frozen=True)
class EngineToolCall:
    call: ToolCall


@dataclass(frozen=True)
class EngineInterrupted:
    """The caller started speaking over the agent."""


EngineEvent = Union[
    EngineReady,
    EngineAudio,
    EngineTranscription,
    EngineToolCall,
    EngineInterrupted,
]


class StreamingEngine(ABC):
    """
    Upstream conversational-AI connection.

    `events()` yields engine events in the order the engine produced them and
    ends when the upstream connection closes. Transport problems are raised as
    `TransportFault`.
    """

    name = "engine"

    @abstractmethod
    async def connect(self, setup: EngineSetup) -> None:
        """Open the upstream connection."""

    @abstractmethod
    def events(self) -> AsyncIterator[EngineEvent]:
        """Iterate over upstream events until the connection closes."""

    @abstractmethod
    async def send_audio(self, frame: AudioFrame) -> None:
        """Forward one captured audio frame."""

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send a user text turn."""

    @abstractmethod
    async def send_tool_response(self, response: ToolResponse) -> None:
        """Answer a tool call."""

    @abstractmethod
    async def begin_speaking(self) -> None:
        """Prompt the agent to open the conversation."""

    @abstractmethod
    async def end_audio_stream(self) -> None:
        """Signal that no more caller audio will follow."""

    @abstractmethod
    async def close(self) -> None:
        """Release the upstream connection. Safe to call more than once."""
