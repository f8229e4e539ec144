import asyncio
from unittest.mock import MagicMock

import pytest

from voice_intake.bot.idle_timer import IdleTimer


@pytest.mark.asyncio
async def test_fires_once_after_inactivity():
    callback = MagicMock()
    timer = IdleTimer(0.02, callback)

    timer.reset()
    await asyncio.sleep(0.08)
    timer.reset()
    await asyncio.sleep(0.08)

    callback.assert_called_once()
    assert timer.fired


@pytest.mark.asyncio
async def test_reset_postpones_expiry():
    callback = MagicMock()
    timer = IdleTimer(0.05, callback)

    timer.reset()
    for _ in range(4):
        await asyncio.sleep(0.03)
        timer.reset()
    callback.assert_not_called()

    await asyncio.sleep(0.1)
    callback.assert_called_once()


@pytest.mark.asyncio
async def test_cancel_prevents_firing():
    callback = MagicMock()
    timer = IdleTimer(0.02, callback)

    timer.reset()
    timer.cancel()
    timer.reset()
    await asyncio.sleep(0.06)

    callback.assert_not_called()
    assert not timer.enabled


@pytest.mark.asyncio
async def test_zero_timeout_disables_timer():
    callback = MagicMock()
    timer = IdleTimer(0, callback)

    timer.reset()
    await asyncio.sleep(0.02)

    assert not timer.enabled
    callback.assert_not_called()
