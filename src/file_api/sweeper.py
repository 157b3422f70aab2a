"""
PeriodicSweeper - fixed-interval background maintenance

Drives the rate-limit bucket GC and the response-cache expiry sweep
independently of request traffic.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from file_api.logging_config import get_logger

logger = get_logger("sweeper")


class PeriodicSweeper:
    """
    Runs ``func`` every ``interval_seconds`` on the event loop.

    Failures are logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], int],
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"sweeper:{self.name}")
        logger.info(
            "Sweeper started",
            extra={"sweeper": self.name, "interval_seconds": self.interval_seconds},
        )

    async def stop(self) -> None:
        """Stop the sweep loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Sweeper stopped", extra={"sweeper": self.name})

    def run_once(self) -> int:
        """Run one sweep, returning the number of removed items (0 on failure)."""
        try:
            removed = self.func()
        except Exception:
            logger.exception("Sweep failed", extra={"sweeper": self.name})
            return 0
        if removed:
            logger.debug("Sweep removed items", extra={"sweeper": self.name, "removed": removed})
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.run_once()
