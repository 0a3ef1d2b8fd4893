"""Cancelable single-shot timer used for the motion debounce window."""
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class MotionTimer:
    """
    A restartable, cancelable deferred callback owned by one device.

    ``start()`` always cancels a pending run before arming a new one, so at most
    one callback is ever outstanding. The callback runs on the event loop once
    the delay elapses without a restart or cancel.

    Example:
        >>> timer = MotionTimer(clear_motion, name="motion_reset_front_door")
        >>> timer.start(10)
        >>> timer.is_armed
        True
        >>> timer.cancel()
    """

    def __init__(self, callback: Callable[[], None], name: Optional[str] = None):
        self._callback = callback
        self._name = name or "motion_timer"
        self._task: Optional[asyncio.Task] = None

    @property
    def is_armed(self) -> bool:
        """True while a callback is scheduled and has not fired or been canceled."""
        return self._task is not None and not self._task.done()

    def start(self, delay: float) -> None:
        """
        Arm the timer, replacing any pending run.

        Must be called from a running event loop.
        """
        self.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(delay), name=self._name)

    def cancel(self) -> None:
        """Cancel a pending run. Safe to call when not armed."""
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            # Restarted or canceled before the deadline
            return

        self._task = None
        try:
            self._callback()
        except Exception:
            logger.exception(
                f"Timer callback failed: {self._name}",
                extra={"event_type": "motion_timer_callback_error", "timer": self._name}
            )
