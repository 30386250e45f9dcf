"""Weekly Restock Digest Scheduler.

In-process scheduler that fires the restock digest once per ISO week at a
fixed local time (Monday 18:00 America/New_York by default). Uses an asyncio
task; no external scheduler.

The last week a digest fired is persisted as a watermark in the config
document. It is written *before* delivery starts, so a delivery failure
halfway through never leads to a second digest in the same week.

Usage:
    scheduler = DigestScheduler(config=config_store, send=engine.send_digests)
    scheduler.start()  # Non-blocking, spawns background task
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

from .config_store import ConfigStore
from .digest import iso_week_label

logger = logging.getLogger("sparkstock.scheduler")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DigestScheduler:
    """Background scheduler for the weekly restock digest.

    Checks every ``check_interval`` seconds whether it is the send minute
    in the reference timezone and the current week has not been sent yet.
    """

    def __init__(
        self,
        *,
        config: ConfigStore,
        send: Callable[[], Awaitable[Any]],
        tz: str = "America/New_York",
        weekday: int = 0,
        hour: int = 18,
        minute: int = 0,
        check_interval: int = 60,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.config = config
        self.send = send
        self.tz = ZoneInfo(tz)
        self.weekday = weekday
        self.hour = hour
        self.minute = minute
        self.check_interval = check_interval
        self.clock = clock
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        """Start the scheduler as a background task."""
        if self._task and not self._task.done():
            logger.warning("Scheduler already running")
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Digest scheduler started (interval=%ds)", self.check_interval)

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("Digest scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        """Main scheduler loop."""
        while True:
            try:
                await self._check_and_send()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Scheduler error")
            await asyncio.sleep(self.check_interval)

    def local_now(self) -> datetime:
        return self.clock().astimezone(self.tz)

    def is_send_minute(self, local: datetime) -> bool:
        return (
            local.weekday() == self.weekday
            and local.hour == self.hour
            and local.minute == self.minute
        )

    async def _check_and_send(self) -> bool:
        """Fire the digest if due. Returns True when it fired."""
        local = self.local_now()
        if not self.is_send_minute(local):
            return False

        week = iso_week_label(local)
        watermark = await self.config.get_digest_watermark()
        if watermark == week:
            logger.debug("Digest for %s already sent", week)
            return False

        await self.config.set_digest_watermark(week)
        logger.info("Sending weekly digest for %s", week)
        try:
            await self.send()
        except Exception:
            logger.exception("Weekly digest delivery failed for %s", week)
        return True

    async def send_now(self) -> Any:
        """Send the digest immediately, ignoring schedule and watermark."""
        logger.info("Sending digest on demand")
        return await self.send()
