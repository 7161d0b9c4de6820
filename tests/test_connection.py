import threading
import time

import pytest

from fakes import FakeFetcher, FakeTransportFactory, job_dict, new_jobs_message
from remote_print.printing.queue import JobQueue
from remote_print.printing.registry import ABANDONED, FETCH_FAILED, QUEUED, JobRegistry
from remote_print.remote.connection import ConnectionManager, ConnectionState


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def factory():
    return FakeTransportFactory()


def _manager(tmp_path, factory, capacity=10, missing=(), **kwargs):
    fetcher = FakeFetcher(tmp_path, missing=missing)
    mgr = ConnectionManager(
        "ws://jobs.example.com/16",
        fetcher,
        JobQueue(capacity),
        registry=JobRegistry(),
        transport_factory=factory,
        **kwargs,
    )
    return mgr


def test_connect_opens_and_is_idempotent(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    assert mgr.state is ConnectionState.CLOSED

    mgr.connect()
    mgr.connect()

    assert mgr.state is ConnectionState.OPEN
    assert len(factory.transports) == 1
    assert factory.latest.url == "ws://jobs.example.com/16"


def test_batch_is_fetched_queued_and_acknowledged(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    mgr.connect()

    admitted = mgr.handle_message(new_jobs_message(job_dict(1, "a.pdf"), job_dict(2, "b.pdf")))

    assert admitted == [1, 2]
    assert mgr.fetcher.calls == ["a.pdf", "b.pdf"]
    assert mgr.queue.qsize() == 2
    assert factory.events() == [{"type": "JOB_RECEIVED", "job_ids": [1, 2]}]
    assert mgr.registry.get(1)["status"] == QUEUED


def test_failed_download_is_reported_and_skipped(tmp_path, factory):
    mgr = _manager(tmp_path, factory, missing={"missing.pdf"})
    mgr.connect()

    admitted = mgr.handle_message(new_jobs_message(job_dict(1, "a.pdf"), job_dict(2, "missing.pdf")))

    assert admitted == [1]
    assert factory.events() == [
        {"type": "JOB_FAILED", "job_ids": [2]},
        {"type": "JOB_RECEIVED", "job_ids": [1]},
    ]
    assert mgr.registry.get(2)["status"] == FETCH_FAILED
    assert mgr.queue.pop(timeout=0.1).job_id == 1
    assert mgr.queue.qsize() == 0


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[1, 2, 3]",
        '{"type": "NEW_JOBS", "jobs": [{"job_id": "abc"}]}',
        b"\xff\xfe",
        '{"type": "PING"}',
        "[" * 100000 + "]" * 100000,
    ],
    ids=["truncated", "array", "bad-job-id", "not-utf8", "other-type", "deeply-nested"],
)
def test_malformed_or_unknown_messages_are_dropped(tmp_path, factory, raw):
    mgr = _manager(tmp_path, factory)
    mgr.connect()

    assert mgr.handle_message(raw) == []
    assert factory.events() == []
    assert mgr.queue.qsize() == 0


def test_empty_batch_is_still_acknowledged(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    mgr.connect()
    assert mgr.handle_message(new_jobs_message()) == []
    assert factory.events() == [{"type": "JOB_RECEIVED", "job_ids": []}]


def test_duplicate_pending_job_is_ignored(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    mgr.connect()
    mgr.handle_message(new_jobs_message(job_dict(7)))
    assert mgr.handle_message(new_jobs_message(job_dict(7))) == []
    assert mgr.queue.qsize() == 1


def test_messages_arrive_through_transport_callback(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    mgr.connect()
    factory.latest.on_message(new_jobs_message(job_dict(3)))
    assert mgr.queue.qsize() == 1


def test_admission_blocks_while_queue_is_full(tmp_path, factory):
    mgr = _manager(tmp_path, factory, capacity=1)
    mgr.connect()
    done = threading.Event()

    def receive():
        mgr.handle_message(new_jobs_message(job_dict(1), job_dict(2)))
        done.set()

    t = threading.Thread(target=receive, daemon=True)
    t.start()

    assert _wait_until(lambda: mgr.queue.qsize() == 1)
    assert not done.wait(0.2)
    # Acknowledgement waits for the whole batch
    assert factory.events() == []

    assert mgr.queue.pop(timeout=1.0).job_id == 1
    assert done.wait(2.0)
    t.join(2.0)
    assert factory.events() == [{"type": "JOB_RECEIVED", "job_ids": [1, 2]}]


def test_jobs_arriving_after_close_are_abandoned(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    mgr.connect()
    mgr.queue.close_for_admission()

    assert mgr.handle_message(new_jobs_message(job_dict(1), job_dict(2))) == []

    assert mgr.registry.get(1)["status"] == ABANDONED
    assert mgr.registry.get(2)["status"] == ABANDONED
    assert factory.events() == [{"type": "JOB_RECEIVED", "job_ids": []}]


def test_send_is_dropped_when_not_open(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    assert mgr.send("hello") is False

    mgr.connect()
    assert mgr.send("hello") is True

    factory.latest.closed = True
    assert mgr.send("again") is False

    factory.latest.on_close()
    assert mgr.state is ConnectionState.CLOSED
    assert mgr.reporter.completed(1) is False


def test_stale_transport_callbacks_are_ignored(tmp_path, factory):
    mgr = _manager(tmp_path, factory)
    mgr.connect()
    old = factory.latest
    old.on_error(OSError("reset"))
    assert mgr.state is ConnectionState.CLOSED

    mgr.connect()
    new = factory.latest
    assert new is not old
    assert old.closed

    old.on_close()
    old.on_message(new_jobs_message(job_dict(1)))
    assert mgr.state is ConnectionState.OPEN
    assert mgr.queue.qsize() == 0


def test_pending_connect_is_replaced_after_timeout(tmp_path):
    factory = FakeTransportFactory(auto_open=False)
    mgr = _manager(tmp_path, factory, connect_timeout=0.05)
    mgr.connect()
    assert mgr.state is ConnectionState.CONNECTING

    mgr.connect()
    assert len(factory.transports) == 1

    time.sleep(0.1)
    mgr.connect()
    assert len(factory.transports) == 2
    assert factory.transports[0].closed


def test_monitor_reconnects_and_closes_admission_on_stop(tmp_path, factory):
    mgr = _manager(tmp_path, factory, reconnect_interval=0.02)
    stop = threading.Event()
    t = threading.Thread(target=mgr.monitor, args=(stop,), daemon=True)
    t.start()

    assert _wait_until(lambda: mgr.state is ConnectionState.OPEN)
    first = factory.latest
    first.on_close()

    assert _wait_until(lambda: len(factory.transports) == 2 and mgr.state is ConnectionState.OPEN)
    assert factory.latest is not first

    stop.set()
    t.join(2.0)
    assert not t.is_alive()
    assert mgr.queue.closed


def test_transport_factory_failure_leaves_state_closed(tmp_path):
    def broken_factory(url, **callbacks):
        raise OSError("name resolution failed")

    mgr = _manager(tmp_path, broken_factory)
    mgr.connect()
    assert mgr.state is ConnectionState.CLOSED
