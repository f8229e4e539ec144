"""
Pydantic models for the relay WebSocket protocol.

This module defines structured data models for all messages exchanged between the
audio client and the relay, providing type validation and documentation. Every
message is a JSON object with a `type` field.
"""

from typing import Any, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, Field, field_validator

from voice_intake.config.constants import INPUT_MIME_TYPE
from voice_intake.models.records import StructuredRecord


class BaseMessage(BaseModel):
    """Base model for all WebSocket messages."""

    type: str = Field(..., description="Message type identifier")


# Client -> relay
class StartConfig(BaseModel):
    """Optional caller-side settings sent with `start`."""

    organizationName: Optional[str] = Field(
        None, description="Organization the agent answers for"
    )
    agentName: Optional[str] = Field(None, description="Name the agent introduces itself with")


class StartMessage(BaseMessage):
    type: Literal["start"]
    config: Optional[StartConfig] = None


class AudioMessage(BaseMessage):
    """Base64 PCM16 audio, used in both directions."""

    type: Literal["audio"]
    data: str = Field(..., description="Base64-encoded PCM16 audio")
    mimeType: str = Field(INPUT_MIME_TYPE, description="Audio mime type with rate")


class TextMessage(BaseMessage):
    type: Literal["text"]
    text: str

    @field_validator("text")
    def validate_text(cls, v):
        """Validate that the text is not empty."""
        if not v.strip():
            raise ValueError("Text cannot be empty")
        return v


class ToolResponseMessage(BaseMessage):
    """Client-side answer to a tool call the relay does not handle itself."""

    type: Literal["toolResponse"]
    id: str
    name: str
    response: Dict[str, Any] = Field(default_factory=dict)


class StopMessage(BaseMessage):
    type: Literal["stop"]


# Relay -> client
class OpenMessage(BaseMessage):
    type: Literal["open"] = "open"


class CloseMessage(BaseMessage):
    type: Literal["close"] = "close"


class ErrorMessage(BaseMessage):
    type: Literal["error"] = "error"
    message: str


class TranscriptionMessage(BaseMessage):
    type: Literal["transcription"] = "transcription"
    text: str
    isUser: bool


class ToolCallMessage(BaseMessage):
    type: Literal["toolCall"] = "toolCall"
    id: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class InterruptedMessage(BaseMessage):
    type: Literal["interrupted"] = "interrupted"


class SickNoteMessage(BaseMessage):
    """Notification that a record was collected and saved."""

    type: Literal["sickNote"] = "sickNote"
    data: StructuredRecord


# Union type for all possible incoming messages
IncomingMessage = Union[
    StartMessage,
    AudioMessage,
    TextMessage,
    ToolResponseMessage,
    StopMessage,
]

# Union type for all possible outgoing messages
OutgoingMessage = Union[
    OpenMessage,
    CloseMessage,
    ErrorMessage,
    AudioMessage,
    TranscriptionMessage,
    ToolCallMessage,
    InterruptedMessage,
    SickNoteMessage,
]

INCOMING_MODELS: Dict[str, Type[BaseMessage]] = {
    "start": StartMessage,
    "audio": AudioMessage,
    "text": TextMessage,
    "toolResponse": ToolResponseMessage,
    "stop": StopMessage,
}
