"""
Bot module: the relay session and everything it drives during a call.

Key components:
- session: One Session per client connection. Runs the IDLE -> CONNECTING ->
  OPEN -> STREAMING -> CLOSING -> CLOSED state machine, forwards audio and
  events between the client and its exclusively owned streaming engine.
- idle_timer: Inactivity watchdog that closes abandoned sessions.
- tool_router: Answers `submitRecord` tool calls by validating the collected
  fields against the directory and persisting the record.
- instructions: System instructions and the tool declaration sent at connect.
- engines: The StreamingEngine interface with Gemini Live and OpenAI Realtime
  implementations.

Usage examples:
```python
from voice_intake.bot.session import Session

session = Session(websocket, engine_factory, directory, records, idle_timeout=120)
await session.run()
```
"""
