"""
Streaming engines the relay can talk to.

- base: The StreamingEngine interface and the engine-neutral event types
- gemini_live: Gemini Live API (default)
- openai_realtime: OpenAI Realtime API over WebSocket
"""

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
from voice_intake.config.settings import Settings
from voice_intake.errors import CredentialMissing


def create_engine(settings: Settings) -> StreamingEngine:
    """
    Create the engine selected by the ENGINE setting.

    Raises:
        CredentialMissing: The selected engine has no API key configured
    """
    if not settings.engine_api_key:
        raise CredentialMissing(f"No API key configured for engine '{settings.engine}'")

    if settings.engine == "openai":
        from voice_intake.bot.engines.openai_realtime import OpenAIRealtimeEngine

        return OpenAIRealtimeEngine(settings.engine_api_key, settings.openai_model)

    from voice_intake.bot.engines.gemini_live import GeminiLiveEngine

    return GeminiLiveEngine(settings.engine_api_key, settings.gemini_model)


__all__ = [
    "EngineAudio",
    "EngineEvent",
    "EngineInterrupted",
    "EngineReady",
    "EngineSetup",
    "EngineToolCall",
    "EngineTranscription",
    "StreamingEngine",
    "create_engine",
]
