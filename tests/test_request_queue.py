"""Tests for the serialized backoff queue."""
from __future__ import annotations

import threading
import time

import pytest

from feedsync import request_queue
from feedsync.errors import TransientRemoteError
from feedsync.request_queue import BackoffQueue, call_with_timeout


def test_submit_returns_operation_result(fast_queue):
    assert fast_queue.submit(lambda: 41 + 1) == 42


def test_operations_run_in_submission_order(fast_queue):
    order = []
    futures = [fast_queue.submit_nowait(lambda i=i: order.append(i)) for i in range(10)]
    for f in futures:
        f.result(timeout=5)
    assert order == list(range(10))


def test_failed_operation_is_retried_at_head_before_newer_work(monkeypatch):
    sleeps = []
    monkeypatch.setattr(request_queue.time, "sleep", lambda s: sleeps.append(s))

    queue = BackoffQueue(base_delay=0.01, pacing_window=(0, 0))
    release = threading.Event()
    order = []
    b_calls = {"n": 0}

    def op_a():
        release.wait(5)
        order.append("A")

    def op_b():
        b_calls["n"] += 1
        if b_calls["n"] == 1:
            order.append("B(fail)")
            raise TransientRemoteError("rate limited", 429)
        order.append("B(ok)")
        return "b"

    def op_c():
        order.append("C")
        return "c"

    fa = queue.submit_nowait(op_a)
    fb = queue.submit_nowait(op_b)
    fc = queue.submit_nowait(op_c)
    release.set()

    assert fb.result(timeout=5) == "b"
    assert fc.result(timeout=5) == "c"
    fa.result(timeout=5)
    assert order == ["A", "B(fail)", "B(ok)", "C"]
    # B went back in front of C: depth 2 -> 2**2 * base_delay
    assert pytest.approx(0.04) in sleeps


def test_non_transient_error_reaches_caller_and_queue_keeps_going(fast_queue):
    def boom():
        raise ValueError("bad request")

    failing = fast_queue.submit_nowait(boom)
    after = fast_queue.submit_nowait(lambda: "still running")

    with pytest.raises(ValueError):
        failing.result(timeout=5)
    assert after.result(timeout=5) == "still running"


class Halt(BaseException):
    pass


def test_base_exception_reaches_caller_and_worker_survives(fast_queue):
    def interrupted():
        raise Halt()

    failing = fast_queue.submit_nowait(interrupted)
    after = fast_queue.submit_nowait(lambda: "still running")

    with pytest.raises(Halt):
        failing.result(timeout=5)
    assert after.result(timeout=5) == "still running"


def test_transient_failures_retry_until_success(fast_queue):
    attempts = {"n": 0}

    def flaky():
        attempts["n"] += 1
        if attempts["n"] < 4:
            raise TransientRemoteError("timeout")
        return "done"

    assert fast_queue.submit(flaky, timeout=5) == "done"
    assert attempts["n"] == 4


def test_backoff_grows_with_depth_not_attempts():
    queue = BackoffQueue(base_delay=1.0)
    assert queue.backoff_delay(1) == 2.0
    assert queue.backoff_delay(3) == 8.0


def test_pacing_delay_within_window():
    queue = BackoffQueue(pacing_window=(1.5, 3.5))
    for _ in range(50):
        assert 1.5 <= queue.pacing_delay() <= 3.5


def test_worker_stops_when_drained(fast_queue):
    fast_queue.submit(lambda: None)
    deadline = time.monotonic() + 2
    while fast_queue._processing and time.monotonic() < deadline:
        time.sleep(0.01)
    assert fast_queue.pending == 0
    assert fast_queue._processing is False
    # and starts again on demand
    assert fast_queue.submit(lambda: "again") == "again"


class TestCallWithTimeout:
    def test_returns_result(self):
        assert call_with_timeout(lambda: "ok", 1, "default") == "ok"

    def test_returns_default_when_stalled(self):
        stall = threading.Event()
        try:
            assert call_with_timeout(lambda: stall.wait(5), 0.05, "default") == "default"
        finally:
            stall.set()

    def test_propagates_errors(self):
        def boom():
            raise TransientRemoteError("down")

        with pytest.raises(TransientRemoteError):
            call_with_timeout(boom, 1, None)
