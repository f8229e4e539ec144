"""
Handlers for messages arriving from the audio client over the relay WebSocket.

Key components:
- control_handlers: Session lifecycle (`start`, `stop`)
- stream_handlers: Streamed content (`audio`, `text`, `toolResponse`)

Every handler has the signature `async handler(message, session)`, where `message`
is the decoded JSON object and `session` the relay session it arrived on.
Unrecoverable problems are raised as relay errors and handled by the session.
"""

from typing import Any, Awaitable, Callable, Dict

from voice_intake.config.constants import (
    MESSAGE_TYPE_AUDIO,
    MESSAGE_TYPE_START,
    MESSAGE_TYPE_STOP,
    MESSAGE_TYPE_TEXT,
    MESSAGE_TYPE_TOOL_RESPONSE,
)
from voice_intake.handlers.control_handlers import handle_start, handle_stop
from voice_intake.handlers.stream_handlers import (
    handle_audio,
    handle_text,
    handle_tool_response,
)

HandlerFunc = Callable[[Dict[str, Any], Any], Awaitable[None]]

MESSAGE_HANDLERS: Dict[str, HandlerFunc] = {
    MESSAGE_TYPE_START: handle_start,
    MESSAGE_TYPE_AUDIO: handle_audio,
    MESSAGE_TYPE_TEXT: handle_text,
    MESSAGE_TYPE_TOOL_RESPONSE: handle_tool_response,
    MESSAGE_TYPE_STOP: handle_stop,
}
