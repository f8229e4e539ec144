"""
Voice Intake Relay - realtime voice agent that collects sick notes over the phone

This application lets a caller talk to an automated voice agent which collects a
small structured record (location, organization, child name, date of birth and
how long the child will be absent) and stores it once every field is known.

The relay process sits between a local audio endpoint (browser or the bundled
voice client) and a remote streaming conversational-AI engine. It streams audio
in both directions, forwards transcriptions and interruptions, and answers the
engine's tool calls by checking the collected data against a directory of
organizations before persisting it.

Architecture Overview:
- FastAPI server exposing the `/ws` relay endpoint and a small JSON HTTP API
  for the directory and the collected records
- One owned relay session per WebSocket connection, driven by an explicit
  state machine and an idle-timeout watchdog
- Pluggable streaming engines (Gemini Live, OpenAI Realtime)
- Client-side audio helpers for resampling captured audio and gapless playback

Key Components:
- audio: Resampling/encoding of captured audio and playback scheduling
- bot: Relay session, idle timer, tool-call router and streaming engines
- config: Application-wide configuration, constants, and logging setup
- handlers: Message handlers for the client relay protocol
- models: Pydantic models for wire messages and stored records
- services: Directory matcher, JSON stores and the relay protocol client
- websocket_manager: Accepts relay connections and runs one session per call

Getting Started:
1. Set up environment variables:
   - GEMINI_API_KEY (or OPENAI_API_KEY with ENGINE=openai)
   - PORT: Port to run the server on (default 8000)
   - IDLE_TIMEOUT_SECONDS: Idle window before a call is closed (default 120)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Talk to the agent:
   ```bash
   python -m voice_intake.voice_client --url ws://localhost:8000/ws
   ```
"""
