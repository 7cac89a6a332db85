"""Background worker threads for migration jobs."""
from __future__ import annotations

import threading
import time
from typing import Callable, List

from storesync.jobs.queue import DispatchQueue
from storesync.utils import get_logger

logger = get_logger(__name__)


class MigrationWorker:
    """Pulls job ids off the dispatch queue and hands them to ``handler``.

    Each worker processes one job at a time; the pool size bounds how many
    jobs run concurrently.
    """

    def __init__(self, queue: DispatchQueue, handler: Callable[[str], None], *, name: str = "migration-worker", poll_timeout: float = 1.0):
        self.queue = queue
        self.handler = handler
        self.name = name
        self.poll_timeout = poll_timeout
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.is_alive:  # pragma: no cover
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Migration worker started", worker=self.name)

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None and timeout is not None:
            self._thread.join(timeout=timeout)
        logger.info("Migration worker stop requested", worker=self.name)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                job_id = self.queue.dequeue(timeout=self.poll_timeout)
                if job_id is None:
                    continue
                self.handler(job_id)
            except Exception as e:  # pragma: no cover - keep the worker alive
                logger.error("Worker loop error", worker=self.name, error=str(e), exc_info=True)
                time.sleep(1)


def start_workers(queue: DispatchQueue, handler: Callable[[str], None], count: int) -> List[MigrationWorker]:
    workers = [MigrationWorker(queue, handler, name=f"migration-worker-{i + 1}") for i in range(max(1, count))]
    for worker in workers:
        worker.start()
    return workers


__all__ = ["MigrationWorker", "start_workers"]
