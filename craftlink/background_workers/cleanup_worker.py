import asyncio
from typing import Optional
from craftlink.common.logging_setup import get_logger

logger = get_logger("craftlink.workers")


class ExpiryCleanupWorker:
    """Periodically purges expired otps and sessions. One loop per process."""

    def __init__(self, auth_service, interval: float = 3600.0, name: str = "expiry-cleanup"):
        self.auth_service = auth_service
        self.interval = interval
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._runs = 0

    @property
    def runs(self) -> int:
        return self._runs

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> tuple[int, int]:
        otps = await self.auth_service.cleanup_expired_otps()
        sessions = await self.auth_service.cleanup_expired_sessions()
        self._runs += 1
        logger.info("cleanup.completed", extra={
            "worker": self.name,
            "otps_removed": otps,
            "sessions_removed": sessions,
            "run": self._runs,
        })
        return otps, sessions

    async def _loop(self):
        logger.info("[%s] loop running", self.name)
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception:
                # next tick retries
                logger.exception("[%s] cleanup run failed", self.name)

    def start(self):
        if self.interval <= 0:
            logger.info("[%s] disabled", self.name)
            return
        if not self.running:
            self._task = asyncio.create_task(self._loop(), name=self.name)
            logger.info("[%s] started", self.name)

    async def stop(self, wait_timeout: float = 5.0):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await asyncio.wait_for(self._task, timeout=wait_timeout)
        except asyncio.CancelledError:
            pass
        except asyncio.TimeoutError:
            logger.warning("[%s] did not stop in time", self.name)
        self._task = None
        logger.info("[%s] exiting", self.name)
