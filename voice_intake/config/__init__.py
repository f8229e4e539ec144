"""
Configuration module for the voice intake relay.

This module provides centralized configuration management for the application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants such as message types, audio formats,
  the record field names and the submit tool name.
- logging_config: Console and rotating file logging for the `voice_intake` logger.
- settings: Environment-driven runtime settings (port, engine, credentials,
  idle timeout, data directory).

Usage examples:
```python
from voice_intake.config.constants import LOGGER_NAME, INPUT_SAMPLE_RATE
from voice_intake.config.logging_config import configure_logging
from voice_intake.config.settings import get_settings

logger = configure_logging()
settings = get_settings()
logger.info(f"Using engine {settings.engine}")
```
"""

# Config module initialization
