"""
Environment-driven runtime settings.

Values are read from the process environment each time `get_settings()` is called,
after `load_environment()` has merged any `.env.local` / `.env` file found in the
working directory.
"""

import os
from pathlib import Path
from typing import Literal, Optional

import dotenv
from pydantic import BaseModel, Field

from voice_intake.config.constants import (
    DEFAULT_AGENT_VOICE,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_IDLE_TIMEOUT_SECONDS,
    DEFAULT_OPENAI_REALTIME_MODEL,
)

ENV_FILES = (".env.local", ".env")


class Settings(BaseModel):
    """Runtime configuration for the relay server."""

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    engine: Literal["gemini", "openai"] = "gemini"
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_REALTIME_MODEL
    agent_voice: str = DEFAULT_AGENT_VOICE
    idle_timeout_seconds: float = Field(DEFAULT_IDLE_TIMEOUT_SECONDS, ge=0)
    data_dir: Path = Path("data")

    @property
    def engine_api_key(self) -> Optional[str]:
        """Credential for the selected streaming engine."""
        if self.engine == "openai":
            return self.openai_api_key
        return self.gemini_api_key


def load_environment(base_dir: Path = Path(".")) -> None:
    """Load environment variables from .env files if they exist."""
    for name in ENV_FILES:
        env_path = base_dir / name
        if env_path.exists():
            dotenv.load_dotenv(env_path)


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        engine=os.getenv("ENGINE", "gemini").lower(),
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_OPENAI_REALTIME_MODEL),
        agent_voice=os.getenv("AGENT_VOICE", DEFAULT_AGENT_VOICE),
        idle_timeout_seconds=float(
            os.getenv("IDLE_TIMEOUT_SECONDS", str(DEFAULT_IDLE_TIMEOUT_SECONDS))
        ),
        data_dir=Path(os.getenv("DATA_DIR", "data")),
    )
