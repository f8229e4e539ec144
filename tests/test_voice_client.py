import pytest
from unittest.mock import MagicMock

pytest.importorskip("pyaudio")

from voice_intake.services.websocket_client import RelayClient  # noqa: E402
from voice_intake.voice_client import VoiceClient  # noqa: E402


@pytest.fixture
def voice_client():
    return VoiceClient(RelayClient("ws://localhost:8000/ws"), scheduler=MagicMock())


@pytest.mark.asyncio
async def test_open_starts_capture_and_close_stops_it(voice_client):
    await voice_client.handle_message({"type": "open"})
    assert voice_client.capturing

    await voice_client.handle_message({"type": "close"})
    assert not voice_client.capturing


@pytest.mark.asyncio
async def test_agent_audio_is_scheduled(voice_client):
    await voice_client.handle_message(
        {"type": "audio", "data": "AAA=", "mimeType": "audio/pcm;rate=24000"}
    )
    voice_client.scheduler.schedule_chunk.assert_called_once_with("AAA=", "audio/pcm;rate=24000")


@pytest.mark.asyncio
async def test_interruption_flushes_playback(voice_client):
    await voice_client.handle_message({"type": "interrupted"})
    voice_client.scheduler.interrupt.assert_called_once()


@pytest.mark.asyncio
async def test_transcriptions_are_printed(voice_client, capsys):
    await voice_client.handle_message({"type": "transcription", "text": "Hello", "isUser": True})
    await voice_client.handle_message({"type": "sickNote", "data": {"subjectName": "Max"}})
    output = capsys.readouterr().out
    assert "You: Hello" in output
    assert '"subjectName": "Max"' in output
