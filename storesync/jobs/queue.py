"""In-memory priority dispatch queue for migration job ids.

- Priority ordering (lower numeric priority value = higher priority).
- FIFO among equal priorities via a monotonically increasing sequence number.
- Capacity limit / backpressure via QUEUE_SETTINGS["max_in_memory"].
- Thread-safe with a condition variable; workers block in ``dequeue``.

Only job ids travel through the queue; the job itself lives in the JobStore.
"""
from __future__ import annotations

import heapq
import threading
import time
from dataclasses import dataclass
from typing import Optional

from storesync.config import QUEUE_SETTINGS
from storesync.utils import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class QueueItem:
    job_id: str
    priority_label: str
    priority_value: int
    enqueued_at: float
    seq: int


class DispatchQueue:
    def __init__(self) -> None:
        priorities_cfg = QUEUE_SETTINGS.get("priorities", {})  # type: ignore[assignment]
        self._priority_map: dict[str, int] = priorities_cfg if isinstance(priorities_cfg, dict) else {"normal": 5}
        self._warn_depth = int(QUEUE_SETTINGS.get("warn_depth", 100))  # type: ignore[arg-type]
        self._max_in_memory = int(QUEUE_SETTINGS.get("max_in_memory", 1000))  # type: ignore[arg-type]
        self._lock = threading.Lock()
        self._cv = threading.Condition(self._lock)
        self._heap: list[tuple[int, int, QueueItem]] = []  # (priority_value, seq, item)
        self._seq_counter = 0
        self._shutdown = False

    @property
    def priorities(self) -> tuple[str, ...]:
        return tuple(self._priority_map)

    def enqueue(self, job_id: str, *, priority: str = "normal") -> QueueItem:
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Queue shutdown")
            if len(self._heap) >= self._max_in_memory:
                raise OverflowError("Queue capacity exceeded")
            if priority not in self._priority_map:
                raise ValueError(f"Unknown priority '{priority}'")
            self._seq_counter += 1
            item = QueueItem(
                job_id=job_id,
                priority_label=priority,
                priority_value=self._priority_map[priority],
                enqueued_at=time.time(),
                seq=self._seq_counter,
            )
            heapq.heappush(self._heap, (item.priority_value, item.seq, item))
            if len(self._heap) >= self._warn_depth:
                logger.warning("Queue depth warning", depth=len(self._heap))
            self._cv.notify()
            return item

    def dequeue(self, *, block: bool = True, timeout: Optional[float] = None) -> Optional[str]:
        """Pop the next job id. Returns None if non-blocking and empty, on timeout, or after shutdown."""
        end_time = None if timeout is None else time.time() + timeout
        with self._lock:
            while True:
                if self._heap:
                    _, _, item = heapq.heappop(self._heap)
                    return item.job_id
                if self._shutdown or not block:
                    return None
                remaining = None if end_time is None else end_time - time.time()
                if remaining is not None and remaining <= 0:
                    return None
                self._cv.wait(timeout=remaining)

    def shutdown(self) -> None:
        with self._lock:
            self._shutdown = True
            self._cv.notify_all()

    def depth(self) -> int:
        with self._lock:
            return len(self._heap)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "depth": len(self._heap),
                "shutdown": self._shutdown,
            }


__all__ = ["DispatchQueue", "QueueItem"]
