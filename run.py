"""
Run script for starting the voice intake relay with low-latency settings.

This script configures and starts the FastAPI server with WebSocket settings
suited to realtime audio streaming between audio clients and the streaming engine.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys
from pathlib import Path

import uvicorn

from voice_intake.config.logging_config import configure_logging
from voice_intake.config.settings import get_settings, load_environment

load_environment(Path("."))

# Configure logging
logger = configure_logging()


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the voice intake relay server"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    args = parse_args()
    configure_logging(args.log_level)
    settings = get_settings()

    # Verify the selected engine has a credential
    if not settings.engine_api_key:
        key_name = "OPENAI_API_KEY" if settings.engine == "openai" else "GEMINI_API_KEY"
        logger.error(f"{key_name} environment variable not set")
        print(f"Error: {key_name} environment variable is required for engine '{settings.engine}'")
        sys.exit(1)

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")
    logger.info(f"Engine: {settings.engine}, idle timeout: {settings.idle_timeout_seconds}s")

    uvicorn.run(
        "voice_intake.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        # Use HTTP/1.1 for lower overhead than HTTP/2
        http="h11",
        # Disable access logs for lower overhead, we have our own logging
        access_log=False,
        ws_ping_interval=5,
        ws_max_size=16777216,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
