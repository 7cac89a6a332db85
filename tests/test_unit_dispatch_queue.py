import threading

import pytest

from storesync.config import QUEUE_SETTINGS
from storesync.jobs.queue import DispatchQueue


def test_priority_queue_ordering():
    q = DispatchQueue()
    q.enqueue("low-1", priority="low")
    q.enqueue("high-1", priority="high")
    q.enqueue("normal-1", priority="normal")
    q.enqueue("high-2", priority="high")
    assert q.snapshot() == {"depth": 4, "shutdown": False}
    drained = [q.dequeue(block=False) for _ in range(4)]
    assert drained == ["high-1", "high-2", "normal-1", "low-1"]
    assert q.dequeue(block=False) is None


def test_unknown_priority_is_rejected():
    with pytest.raises(ValueError):
        DispatchQueue().enqueue("job", priority="urgent")


def test_capacity_overflow(monkeypatch):
    monkeypatch.setitem(QUEUE_SETTINGS, "max_in_memory", 2)
    q = DispatchQueue()
    q.enqueue("a")
    q.enqueue("b")
    with pytest.raises(OverflowError):
        q.enqueue("c")
    assert q.depth() == 2


def test_shutdown_wakes_blocked_consumers_and_refuses_new_work():
    q = DispatchQueue()
    results = []
    consumer = threading.Thread(target=lambda: results.append(q.dequeue(timeout=5)))
    consumer.start()
    q.shutdown()
    consumer.join(timeout=2)
    assert results == [None]
    with pytest.raises(RuntimeError):
        q.enqueue("late")


def test_blocking_dequeue_times_out():
    assert DispatchQueue().dequeue(timeout=0.05) is None
