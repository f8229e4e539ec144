"""
Models module for data structures used by the relay.

Key components:
- message_schemas: Pydantic models for the client <-> relay WebSocket protocol.
- records: Directory entries, collected records, tool calls and tool responses.

Usage examples:
```python
from voice_intake.models.message_schemas import StartMessage, ErrorMessage

start = StartMessage(type="start", config={"organizationName": "Lincoln School"})
await websocket.send_text(ErrorMessage(message="Connection problem").model_dump_json())
```
"""

from voice_intake.models.message_schemas import (
    AudioMessage,
    BaseMessage,
    CloseMessage,
    ErrorMessage,
    IncomingMessage,
    InterruptedMessage,
    OpenMessage,
    OutgoingMessage,
    SickNoteMessage,
    StartConfig,
    StartMessage,
    StopMessage,
    TextMessage,
    ToolCallMessage,
    ToolResponseMessage,
    TranscriptionMessage,
)
from voice_intake.models.records import (
    DirectoryEntry,
    DirectoryEntryCreate,
    RecordData,
    RecordStatusUpdate,
    StructuredRecord,
    ToolCall,
    ToolResponse,
    TranscriptEvent,
)
