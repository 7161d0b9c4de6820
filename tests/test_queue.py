import threading
import time

import pytest

from remote_print.core.errors import QueueClosedError
from remote_print.printing.queue import JobQueue


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_fifo_order():
    q = JobQueue(capacity=3)
    for i in range(3):
        q.push(i)
    q.close_for_admission()
    assert list(q.pop_all()) == [0, 1, 2]


def test_push_beyond_capacity_blocks_until_a_pop():
    q = JobQueue(capacity=10)
    for i in range(10):
        q.push(i)

    pushed = threading.Event()

    def producer():
        q.push(10)
        pushed.set()

    t = threading.Thread(target=producer, daemon=True)
    t.start()

    # The eleventh push must not complete while the queue is full
    assert not pushed.wait(0.2)
    assert q.qsize() == 10

    assert q.pop() == 0
    assert pushed.wait(2.0)
    t.join(2.0)
    assert q.qsize() == 10


def test_push_with_timeout_raises_when_full():
    q = JobQueue(capacity=1)
    q.push("a")
    with pytest.raises(TimeoutError):
        q.push("b", timeout=0.05)


def test_pop_all_blocks_while_empty_and_ends_when_closed_and_drained():
    q = JobQueue(capacity=2)
    seen = []
    finished = threading.Event()

    def consumer():
        for item in q.pop_all():
            seen.append(item)
        finished.set()

    t = threading.Thread(target=consumer, daemon=True)
    t.start()

    q.push("a")
    assert _wait_until(lambda: seen == ["a"])
    assert not finished.is_set()

    q.push("b")
    q.close_for_admission()
    assert finished.wait(2.0)
    assert seen == ["a", "b"]


def test_push_after_close_is_rejected_but_pending_items_drain():
    q = JobQueue(capacity=2)
    q.push(1)
    q.close_for_admission()
    with pytest.raises(QueueClosedError):
        q.push(2)
    assert q.closed
    assert list(q.pop_all()) == [1]


def test_close_wakes_blocked_producer():
    q = JobQueue(capacity=1)
    q.push(1)
    errors = []

    def producer():
        try:
            q.push(2)
        except QueueClosedError as e:
            errors.append(e)

    t = threading.Thread(target=producer, daemon=True)
    t.start()
    time.sleep(0.05)
    q.close_for_admission()
    t.join(2.0)
    assert not t.is_alive()
    assert len(errors) == 1
    assert list(q.pop_all()) == [1]


def test_close_is_idempotent():
    q = JobQueue()
    q.close_for_admission()
    q.close_for_admission()
    assert q.pop(timeout=0.01) is None


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        JobQueue(capacity=0)
