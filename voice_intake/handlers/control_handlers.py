"""
Handles session control messages from the audio client.

`start` opens the upstream engine connection for the session and `stop` begins an
orderly shutdown. Both handlers validate the message with its pydantic model and
report validation problems as MalformedMessage, which ends the session with an
`error` message.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict

from pydantic import ValidationError

from voice_intake.config.constants import LOGGER_NAME
from voice_intake.errors import MalformedMessage
from voice_intake.models.message_schemas import StartMessage, StopMessage

if TYPE_CHECKING:
    from voice_intake.bot.session import Session

logger = logging.getLogger(LOGGER_NAME)


async def handle_start(message: Dict[str, Any], session: "Session") -> None:
    """
    Handle the `start` message.

    Args:
        message: The raw `start` message, optionally carrying `config`
        session: The session the message arrived on

    Raises:
        MalformedMessage: The message does not match the `start` schema
        CredentialMissing: The selected engine has no API key configured
    """
    try:
        start = StartMessage(**message)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid start message: {e}") from e

    logger.info(f"Session {session.session_id} starting")
    await session.start(start.config)


async def handle_stop(message: Dict[str, Any], session: "Session") -> None:
    """Handle the `stop` message by closing the session."""
    try:
        StopMessage(**message)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid stop message: {e}") from e

    logger.info(f"Session {session.session_id} stop requested by client")
    await session.close("client stop")
