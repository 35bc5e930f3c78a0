# contentbot/services/worker.py
import asyncio
import logging
import threading
from typing import Awaitable, Callable, Optional

from contentbot.config import settings

log = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[object]]


class GenerationWorker:
    """Background event loop that runs submitted coroutines.

    The loop lives in its own daemon thread so request handlers and the
    scheduler thread can hand work off without waiting for it. Jobs run to
    completion; `stop()` lets queued jobs drain before the consumers exit.
    """

    def __init__(self, concurrency: int = settings.worker_concurrency):
        self.concurrency = max(1, concurrency)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive() and self._loop is not None)

    def start(self) -> None:
        if self.running:
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._run_loop, name="generation-worker", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout=5):
            raise RuntimeError("Generation worker did not start")
        log.info("[worker] started with %s consumers", self.concurrency)

    def _run_loop(self) -> None:
        asyncio.run(self._main())

    async def _main(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        consumers = [asyncio.create_task(self._consume(i)) for i in range(self.concurrency)]
        self._ready.set()
        await asyncio.gather(*consumers)
        self._loop = None

    async def _consume(self, index: int) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                name, factory = item
                try:
                    await factory()
                except Exception:
                    log.exception("[worker] job %s crashed", name)
            finally:
                self._queue.task_done()

    def submit(self, factory: JobFactory, name: str = "job") -> None:
        """Queue `factory()` to run on the worker loop. Safe to call from any thread."""
        loop = self._loop
        if loop is None or not self.running:
            raise RuntimeError("Generation worker is not running")
        loop.call_soon_threadsafe(self._queue.put_nowait, (name, factory))
        log.debug("[worker] queued %s", name)

    def join(self, timeout: Optional[float] = None) -> None:
        """Block until every queued job has finished."""
        loop = self._loop
        if loop is None:
            return
        asyncio.run_coroutine_threadsafe(self._queue.join(), loop).result(timeout)

    def stop(self, timeout: float = 30) -> None:
        loop, thread = self._loop, self._thread
        if loop is None or thread is None:
            return
        for _ in range(self.concurrency):
            loop.call_soon_threadsafe(self._queue.put_nowait, None)
        thread.join(timeout)
        self._thread = None
        log.info("[worker] stopped")
