"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for protocol names, audio formats and the shape of
the record collected during a call.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_intake"

# Default models for the streaming engines
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-native-audio-preview-12-2025"
DEFAULT_OPENAI_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_AGENT_VOICE = "Kore"

# Audio format constants
INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
OPENAI_SAMPLE_RATE = 24000
CAPTURE_BLOCK_SIZE = 4096
AUDIO_CHANNELS = 1
PCM16_MAX = 32767
INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"
OUTPUT_MIME_TYPE = f"audio/pcm;rate={OUTPUT_SAMPLE_RATE}"

# Idle watchdog default (seconds)
DEFAULT_IDLE_TIMEOUT_SECONDS = 120.0

# Client -> relay message types
MESSAGE_TYPE_START = "start"
MESSAGE_TYPE_AUDIO = "audio"
MESSAGE_TYPE_TEXT = "text"
MESSAGE_TYPE_TOOL_RESPONSE = "toolResponse"
MESSAGE_TYPE_STOP = "stop"

# Relay -> client message types
MESSAGE_TYPE_OPEN = "open"
MESSAGE_TYPE_CLOSE = "close"
MESSAGE_TYPE_ERROR = "error"
MESSAGE_TYPE_TRANSCRIPTION = "transcription"
MESSAGE_TYPE_TOOL_CALL = "toolCall"
MESSAGE_TYPE_INTERRUPTED = "interrupted"
MESSAGE_TYPE_SICK_NOTE = "sickNote"

# Error notices shown to the caller
ERROR_CONNECTION = "Connection problem"
ERROR_INVALID_MESSAGE = "Invalid message format"
ERROR_CREDENTIAL_MISSING = "Engine credential missing on server"

# Structured record collected by the agent
SUBMIT_TOOL_NAME = "submitRecord"
FIELD_LOCATION = "locationName"
FIELD_ORGANIZATION = "organizationName"
FIELD_SUBJECT_NAME = "subjectName"
FIELD_SUBJECT_BIRTH_DATE = "subjectBirthDate"
FIELD_EFFECTIVE_UNTIL = "effectiveUntil"
RECORD_FIELDS = (
    FIELD_LOCATION,
    FIELD_ORGANIZATION,
    FIELD_SUBJECT_NAME,
    FIELD_SUBJECT_BIRTH_DATE,
    FIELD_EFFECTIVE_UNTIL,
)

# Record status values
STATUS_COLLECTED = "collected"
STATUS_CONFIRMED = "confirmed"
STATUS_ARCHIVED = "archived"

# Tool results
RESULT_SUCCESS = "success"
RESULT_REJECTED = "rejected"

# Prompt sent to the engine so the agent speaks first
BEGIN_SPEAKING_PROMPT = "Answer the call."
