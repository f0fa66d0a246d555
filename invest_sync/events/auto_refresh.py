"""
Polling fallback.

``AutoRefresh`` awaits a refresh callback every ``interval`` seconds.  A
failing callback increments a consecutive-failure counter; reaching
``max_retries`` stops the poller instead of retrying forever.  A success
resets the counter.

While the view is hidden the poller is paused; becoming visible again
resumes it with an immediate refresh.  After :meth:`stop` returns the
callback is not invoked again.
"""

import asyncio
import logging
import time
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, Optional

from invest_sync.core.config import settings
from invest_sync.core.exceptions import error_message

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[Any]]


class AutoRefresh:
    def __init__(
        self,
        callback: RefreshCallback,
        interval: float = settings.AUTO_REFRESH_INTERVAL,
        max_retries: int = settings.AUTO_REFRESH_MAX_RETRIES,
        name: str = "auto-refresh",
    ):
        self._callback = callback
        self.interval = interval
        self.max_retries = max_retries
        self.name = name

        self._task: Optional[asyncio.Task] = None
        self._paused = False
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None
        self.last_success_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    @property
    def is_paused(self) -> bool:
        return self._paused

    # ── Lifecycle ──

    def start(self, immediate: bool = False) -> None:
        """Start polling; no-op if already running.  ``immediate`` refreshes right away."""
        if self._task is not None:
            return
        self._paused = False
        self._task = asyncio.get_running_loop().create_task(self._run(immediate))
        logger.info("%s started (every %.1fs)", self.name, self.interval)

    def stop(self) -> None:
        """Stop polling; the callback is not invoked again after this returns."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            logger.info("%s stopped", self.name)

    def restart(self) -> None:
        """Stop, clear the failure counter and start again."""
        self.stop()
        self.consecutive_failures = 0
        self.start()

    def update_interval(self, interval: float) -> None:
        """Change the polling interval; a running poller restarts with it."""
        self.interval = interval
        if self._task is not None:
            self.stop()
            self.start()

    def set_visible(self, visible: bool) -> None:
        """Pause while hidden; on becoming visible resume with an immediate refresh."""
        if not visible:
            if self._task is not None:
                self.stop()
                self._paused = True
            return
        if self._paused:
            self._paused = False
            self.start(immediate=True)

    async def shutdown(self) -> None:
        """Stop and wait for the polling task to unwind."""
        task = self._task
        self.stop()
        self._paused = False
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    # ── Polling loop ──

    async def _run(self, immediate: bool) -> None:
        me = asyncio.current_task()
        if immediate:
            await self._tick()
        while self._task is me:
            await asyncio.sleep(self.interval)
            if self._task is not me:
                break
            await self._tick()

    async def _tick(self) -> None:
        try:
            await self._callback()
        except Exception as exc:
            self.consecutive_failures += 1
            self.last_error = error_message(exc)
            logger.error(
                "%s refresh failed (%d/%d): %s",
                self.name,
                self.consecutive_failures,
                self.max_retries,
                self.last_error,
            )
            if self.consecutive_failures >= self.max_retries:
                logger.warning("%s reached max retries, stopping", self.name)
                self._task = None
            return

        self.consecutive_failures = 0
        self.last_error = None
        self.last_success_at = time.time()

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "running": self.is_running,
            "paused": self._paused,
            "interval_s": self.interval,
            "consecutive_failures": self.consecutive_failures,
            "max_retries": self.max_retries,
            "last_error": self.last_error,
            "last_success_at": self.last_success_at,
        }
