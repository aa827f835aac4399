"""
Periodic store health checking
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .monitoring import store_healthy

logger = logging.getLogger(__name__)


class HealthChecker:
    """Pings the store on an interval and remembers the last result"""

    def __init__(
        self,
        check: Callable[[], Awaitable[object]],
        interval: float = 30.0,
        timeout: float = 5.0
    ):
        self.check = check
        self.interval = interval
        self.timeout = timeout
        self._healthy = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_healthy(self) -> bool:
        return self._healthy

    async def check_health(self) -> bool:
        """Run one check now"""
        try:
            await asyncio.wait_for(self.check(), timeout=self.timeout)
            self._healthy = True
        except Exception as e:
            logger.warning(f"Store health check failed: {e}")
            self._healthy = False

        store_healthy.set(1 if self._healthy else 0)
        return self._healthy

    async def _monitor(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.check_health()

    async def start(self) -> None:
        """Check once, then keep checking in the background"""
        await self.check_health()
        if self._task is None:
            self._task = asyncio.create_task(self._monitor())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
