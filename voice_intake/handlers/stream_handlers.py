"""
Handles streamed content from the audio client.

Audio frames, text turns and client-side tool responses are validated here and
handed to the session, which queues them for the upstream engine in arrival order.
A corrupt audio chunk is dropped without ending the call.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict

from pydantic import ValidationError

from voice_intake.audio.resampler import blob_to_frame
from voice_intake.config.constants import INPUT_SAMPLE_RATE, LOGGER_NAME
from voice_intake.errors import DecodeFault, MalformedMessage
from voice_intake.models.message_schemas import (
    AudioMessage,
    TextMessage,
    ToolResponseMessage,
)
from voice_intake.models.records import ToolResponse

if TYPE_CHECKING:
    from voice_intake.bot.session import Session

logger = logging.getLogger(LOGGER_NAME)


async def handle_audio(message: Dict[str, Any], session: "Session") -> None:
    """
    Handle an `audio` message.

    Args:
        message: The `audio` message with base64 PCM16 `data` and its `mimeType`
        session: The session the message arrived on
    """
    try:
        audio = AudioMessage(**message)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid audio message: {e}") from e

    try:
        frame = blob_to_frame(audio.data, audio.mimeType, INPUT_SAMPLE_RATE)
    except DecodeFault as e:
        logger.warning(f"Dropping audio chunk for session {session.session_id}: {e}")
        return

    session.forward_audio(frame)


async def handle_text(message: Dict[str, Any], session: "Session") -> None:
    """Handle a `text` message by sending it upstream as a user turn."""
    try:
        text = TextMessage(**message)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid text message: {e}") from e

    session.forward_text(text.text)


async def handle_tool_response(message: Dict[str, Any], session: "Session") -> None:
    """
    Handle a `toolResponse` message.

    Only calls the relay does not answer itself are forwarded upstream, and each
    call id is forwarded at most once.
    """
    try:
        tool_response = ToolResponseMessage(**message)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid toolResponse message: {e}") from e

    if session.router.tool_name == tool_response.name:
        logger.warning(
            f"Ignoring client response for {tool_response.name} ({tool_response.id}), "
            "the relay answers this tool itself"
        )
        return

    session.respond_upstream(
        ToolResponse.from_client(tool_response.id, tool_response.name, tool_response.response)
    )
