"""
Unit tests for MotionTimer

Tests cover:
- Callback fires after the delay
- Restart replaces the pending run
- Cancel prevents the callback
- Callback errors are contained
"""
import asyncio
import pytest
from unittest.mock import MagicMock

from protect_motion.services.motion_timer import MotionTimer


class TestMotionTimer:
    """Tests for MotionTimer start/cancel semantics"""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self):
        callback = MagicMock()
        timer = MotionTimer(callback)

        timer.start(0.05)
        assert timer.is_armed is True
        callback.assert_not_called()

        await asyncio.sleep(0.1)

        callback.assert_called_once()
        assert timer.is_armed is False

    @pytest.mark.asyncio
    async def test_restart_replaces_pending_run(self):
        callback = MagicMock()
        timer = MotionTimer(callback)

        timer.start(0.1)
        await asyncio.sleep(0.06)
        timer.start(0.1)
        await asyncio.sleep(0.06)

        # First deadline has passed but the restart superseded it
        callback.assert_not_called()

        await asyncio.sleep(0.08)
        callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancel_prevents_callback(self):
        callback = MagicMock()
        timer = MotionTimer(callback)

        timer.start(0.05)
        timer.cancel()
        assert timer.is_armed is False

        await asyncio.sleep(0.1)
        callback.assert_not_called()

    def test_cancel_when_not_armed(self):
        timer = MotionTimer(MagicMock())
        timer.cancel()
        assert timer.is_armed is False

    @pytest.mark.asyncio
    async def test_callback_error_is_logged_not_raised(self, caplog):
        callback = MagicMock(side_effect=RuntimeError("boom"))
        timer = MotionTimer(callback, name="failing_timer")

        timer.start(0.01)
        await asyncio.sleep(0.05)

        callback.assert_called_once()
        assert timer.is_armed is False
        assert "failing_timer" in caplog.text

    @pytest.mark.asyncio
    async def test_can_rearm_after_firing(self):
        callback = MagicMock()
        timer = MotionTimer(callback)

        timer.start(0.01)
        await asyncio.sleep(0.05)
        timer.start(0.01)
        await asyncio.sleep(0.05)

        assert callback.call_count == 2
