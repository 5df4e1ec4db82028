import asyncio
import logging

from codedrop.service import TransferService

logger = logging.getLogger(__name__)


class CleanupSweeper:
    """Runs ``TransferService.sweep_expired`` on demand or on an interval.

    ``run_once`` backs the ``/cleanup`` route. ``start`` needs a positive
    ``interval_seconds`` and a running event loop.
    """

    def __init__(self, service: TransferService, interval_seconds: float | None = None):
        self.service = service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None
        self._stopped: asyncio.Event | None = None

    def run_once(self) -> int:
        cleaned = self.service.sweep_expired()
        logger.info("expired transfers cleaned up", extra={"cleaned": cleaned})
        return cleaned

    async def run_forever(self, stopped: asyncio.Event) -> None:
        while not stopped.is_set():
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("cleanup pass failed")
            try:
                await asyncio.wait_for(stopped.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.interval_seconds or self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0 to run periodically")
        if self.running:
            return
        # Bound to the current loop; each lifespan gets a fresh one.
        loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()
        self._task = loop.create_task(self.run_forever(self._stopped))
        logger.info("cleanup sweeper started, every %ss", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopped.set()
        try:
            await self._task
        finally:
            self._task = None
            self._stopped = None
        logger.info("cleanup sweeper stopped")
