#!/usr/bin/env python3
"""
Microphone/speaker client for the voice intake relay.

Captures the default input device, resamples every block to 16 kHz PCM16 on the
device callback and streams it to the relay. Agent audio is played through the
playback scheduler from the output device callback, and barge-in interruptions
flush whatever is still queued.

Usage:
    python -m voice_intake.voice_client [--url URL] [--organization NAME] [--agent-name NAME]
"""

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, Optional

import numpy as np
import pyaudio

from voice_intake.audio.playback import PlaybackScheduler
from voice_intake.audio.resampler import encode_block, frame_to_blob
from voice_intake.config.constants import (
    AUDIO_CHANNELS,
    CAPTURE_BLOCK_SIZE,
    LOGGER_NAME,
    MESSAGE_TYPE_AUDIO,
    MESSAGE_TYPE_CLOSE,
    MESSAGE_TYPE_ERROR,
    MESSAGE_TYPE_INTERRUPTED,
    MESSAGE_TYPE_OPEN,
    MESSAGE_TYPE_SICK_NOTE,
    MESSAGE_TYPE_TOOL_CALL,
    MESSAGE_TYPE_TRANSCRIPTION,
    OUTPUT_SAMPLE_RATE,
)
from voice_intake.config.logging_config import configure_logging
from voice_intake.models.message_schemas import StartConfig
from voice_intake.services.websocket_client import RelayClient

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_RELAY_URL = "ws://localhost:8000/ws"
OUTPUT_BLOCK_SIZE = 1024


class VoiceClient:
    """Bridges local audio devices and a RelayClient."""

    def __init__(self, client: RelayClient, scheduler: Optional[PlaybackScheduler] = None):
        self.client = client
        self.scheduler = scheduler or PlaybackScheduler(sample_rate=OUTPUT_SAMPLE_RATE)
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.capturing = False
        self.p = None
        self.input_stream = None
        self.output_stream = None
        self.input_rate = 0

    def _input_callback(self, in_data, frame_count, time_info, status):
        """Runs on the PortAudio thread: encode only, never wait on the network."""
        if self.capturing and self.loop is not None:
            samples = np.frombuffer(in_data, dtype=np.float32)
            blob = frame_to_blob(encode_block(samples, self.input_rate))
            asyncio.run_coroutine_threadsafe(self.client.send_audio(blob), self.loop)
        return (None, pyaudio.paContinue)

    def _output_callback(self, in_data, frame_count, time_info, status):
        return (self.scheduler.render_pcm16(frame_count), pyaudio.paContinue)

    def open_devices(self) -> None:
        self.p = pyaudio.PyAudio()
        device = self.p.get_default_input_device_info()
        self.input_rate = int(device["defaultSampleRate"])
        self.input_stream = self.p.open(
            format=pyaudio.paFloat32,
            channels=AUDIO_CHANNELS,
            rate=self.input_rate,
            input=True,
            frames_per_buffer=CAPTURE_BLOCK_SIZE,
            stream_callback=self._input_callback,
        )
        self.output_stream = self.p.open(
            format=pyaudio.paInt16,
            channels=AUDIO_CHANNELS,
            rate=OUTPUT_SAMPLE_RATE,
            output=True,
            frames_per_buffer=OUTPUT_BLOCK_SIZE,
            stream_callback=self._output_callback,
        )
        logger.info(f"Microphone initialized: {self.input_rate}Hz, {AUDIO_CHANNELS} channel(s)")

    def close_devices(self) -> None:
        self.capturing = False
        for stream in (self.input_stream, self.output_stream):
            if stream is not None:
                stream.stop_stream()
                stream.close()
        self.input_stream = self.output_stream = None
        if self.p is not None:
            self.p.terminate()
            self.p = None
        logger.info("Audio devices closed")

    async def handle_message(self, message: Dict[str, Any]) -> None:
        message_type = message.get("type")
        if message_type == MESSAGE_TYPE_AUDIO:
            self.scheduler.schedule_chunk(message.get("data", ""), message.get("mimeType", ""))
        elif message_type == MESSAGE_TYPE_OPEN:
            self.capturing = True
            print("Connected, the agent will answer shortly. Press Ctrl+C to hang up.")
        elif message_type == MESSAGE_TYPE_INTERRUPTED:
            self.scheduler.interrupt()
        elif message_type == MESSAGE_TYPE_TRANSCRIPTION:
            speaker = "You" if message.get("isUser") else "Agent"
            print(f"{speaker}: {message.get('text', '')}")
        elif message_type == MESSAGE_TYPE_TOOL_CALL:
            logger.info(f"Tool call {message.get('name')} ({message.get('id')})")
        elif message_type == MESSAGE_TYPE_SICK_NOTE:
            print("Record collected:")
            print(json.dumps(message.get("data", {}), indent=2, ensure_ascii=False))
        elif message_type == MESSAGE_TYPE_ERROR:
            print(f"Error: {message.get('message')}")
        elif message_type == MESSAGE_TYPE_CLOSE:
            self.capturing = False
            print("Call ended")

    async def run(self, config: Optional[StartConfig] = None) -> None:
        self.loop = asyncio.get_running_loop()
        if not await self.client.connect():
            return
        self.open_devices()
        try:
            await self.client.start(config)
            await self.client.listen(self.handle_message)
        finally:
            self.close_devices()
            if self.client.connected:
                await self.client.stop()
                await self.client.close()


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Talk to the voice intake relay")
    parser.add_argument("--url", default=DEFAULT_RELAY_URL,
                        help=f"Relay WebSocket URL (default: {DEFAULT_RELAY_URL})")
    parser.add_argument("--organization", default=None,
                        help="Organization the agent answers for")
    parser.add_argument("--agent-name", default=None,
                        help="Name the agent introduces itself with")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    return parser.parse_args()


def main():
    args = parse_args()
    configure_logging(args.log_level)
    config = StartConfig(organizationName=args.organization, agentName=args.agent_name)
    try:
        asyncio.run(VoiceClient(RelayClient(args.url)).run(config))
    except KeyboardInterrupt:
        print("Hung up")


if __name__ == "__main__":
    main()
