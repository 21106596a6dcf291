"""
Refresh Scheduler

Re-fetches one resource's snapshot on a fixed interval or on demand.

State machine: IDLE -> FETCHING -> IDLE, on success and on failure alike.
It is driven by two external signals:
- on_tick(): the interval timer fired
- set_visible(): the consuming view became visible / hidden

A refresh requested while FETCHING joins the fetch already in flight instead
of starting a second one. While hidden the timer is stopped; becoming
visible restarts it and refreshes immediately. A failed refresh leaves the
previous snapshot in place and is reported through ``on_error``.
"""

import asyncio
import enum
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"


class RefreshScheduler:
    def __init__(
        self,
        name: str,
        refresh_fn: Callable[[], Awaitable[None]],
        interval_seconds: float = 0,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ):
        """
        Args:
            name: Resource name, used in log lines
            refresh_fn: Coroutine function that fetches and applies a snapshot
            interval_seconds: Poll interval while visible; 0 disables the timer
            on_error: Called with the exception of a failed refresh
        """
        self.name = name
        self.interval = interval_seconds
        self._refresh_fn = refresh_fn
        self._on_error = on_error

        self.state = SchedulerState.IDLE
        self.visible = False
        self.last_error: Optional[BaseException] = None
        self.last_success_at: Optional[float] = None
        self.refresh_count = 0

        self._inflight: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def fetching(self) -> bool:
        return self.state == SchedulerState.FETCHING

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def request_refresh(self) -> Optional[asyncio.Task]:
        """Start a refresh, or return the one already in flight."""
        if self._closed:
            return None
        if self._inflight is not None:
            logger.debug(f"[{self.name}] refresh already in flight; joining it")
            return self._inflight
        self.state = SchedulerState.FETCHING
        self._inflight = asyncio.ensure_future(self._run())
        return self._inflight

    async def refresh(self) -> bool:
        """Refresh now (or join the in-flight refresh). True on success."""
        task = self.request_refresh()
        if task is None:
            return False
        return await asyncio.shield(task)

    async def _run(self) -> bool:
        try:
            await self._refresh_fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.last_error = exc
            logger.warning(f"[{self.name}] refresh failed, keeping last snapshot: {exc}")
            if self._on_error is not None:
                try:
                    self._on_error(exc)
                except Exception as callback_exc:
                    logger.warning(f"[{self.name}] refresh error handler failed: {callback_exc}")
            return False
        else:
            self.last_error = None
            self.last_success_at = time.monotonic()
            self.refresh_count += 1
            return True
        finally:
            self.state = SchedulerState.IDLE
            self._inflight = None

    # -- signals ------------------------------------------------------------

    def on_tick(self) -> Optional[asyncio.Task]:
        if not self.visible or self._closed:
            return None
        return self.request_refresh()

    def set_visible(self, visible: bool) -> None:
        if visible == self.visible or self._closed:
            return
        self.visible = visible
        if visible:
            logger.debug(f"[{self.name}] visible: resuming refresh")
            self._start_timer()
            self.request_refresh()
        else:
            logger.debug(f"[{self.name}] hidden: pausing refresh")
            self._stop_timer()

    # -- timer --------------------------------------------------------------

    def _start_timer(self) -> None:
        if self.interval <= 0 or self.timer_running:
            return
        self._timer = asyncio.ensure_future(self._timer_loop())

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.on_tick()

    async def close(self, cancel_inflight: bool = False) -> None:
        """Stop the timer; wait for (or cancel) a refresh still in flight."""
        self._closed = True
        self.visible = False
        self._stop_timer()
        inflight = self._inflight
        if inflight is None:
            return
        if cancel_inflight:
            inflight.cancel()
            await asyncio.gather(inflight, return_exceptions=True)
        else:
            await asyncio.shield(inflight)
