"""
Inactivity watchdog for relay sessions.
"""

import asyncio
import logging
from typing import Callable, Optional

from voice_intake.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class IdleTimer:
    """
    One-shot timer that fires when `reset()` has not been called for `timeout` seconds.

    A timeout of 0 disables the timer. After `cancel()` the timer never fires again,
    even if `reset()` is called later.
    """

    def __init__(self, timeout: float, on_timeout: Callable[[], None]):
        self.timeout = timeout
        self._on_timeout = on_timeout
        self._handle: Optional[asyncio.TimerHandle] = None
        self._stopped = False
        self.fired = False

    @property
    def enabled(self) -> bool:
        return self.timeout > 0 and not self._stopped

    def reset(self) -> None:
        """Restart the countdown. Must be called from the event loop thread."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if not self.enabled or self.fired:
            return
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.timeout, self._fire)

    def cancel(self) -> None:
        self._stopped = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        if self._stopped:
            return
        self.fired = True
        logger.info(f"No activity for {self.timeout} seconds")
        self._on_timeout()
