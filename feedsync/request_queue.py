"""Serialized request dispatch with pacing and backoff."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from .errors import TransientRemoteError

LOG = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class QueuedOperation:
    operation: Callable[[], Any]
    future: Future
    attempts: int = 0


class BackoffQueue:
    """Single-worker FIFO of remote calls.

    Operations run one at a time. One that raises a ``retry_on`` exception is
    put back at the head and retried after ``2 ** depth * base_delay``
    seconds, where depth is the queue length at that moment. Any other
    exception goes to the caller. Every attempt is followed by a random
    pause drawn from ``pacing_window``.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        pacing_window: tuple[float, float] = (1.5, 3.5),
        retry_on: tuple[type[BaseException], ...] = (TransientRemoteError,),
        name: str = "feedsync-queue",
    ):
        self.base_delay = base_delay
        self.pacing_window = pacing_window
        self.retry_on = retry_on
        self.name = name
        self._pending: deque[QueuedOperation] = deque()
        self._lock = threading.Lock()
        self._processing = False

    @classmethod
    def from_config(cls) -> "BackoffQueue":
        from .config import get

        return cls(
            base_delay=float(get("queue.base_delay", 1.0)),
            pacing_window=(float(get("queue.pacing_min", 1.5)), float(get("queue.pacing_max", 3.5))),
        )

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def submit_nowait(self, operation: Callable[[], T]) -> "Future[T]":
        future: Future = Future()
        with self._lock:
            self._pending.append(QueuedOperation(operation, future))
            if not self._processing:
                self._processing = True
                threading.Thread(target=self._drain, name=self.name, daemon=True).start()
        return future

    def submit(self, operation: Callable[[], T], timeout: float | None = None) -> T:
        """Queue an operation and block until it settles."""
        return self.submit_nowait(operation).result(timeout)

    def backoff_delay(self, depth: int) -> float:
        return (2 ** depth) * self.base_delay

    def pacing_delay(self) -> float:
        low, high = self.pacing_window
        return random.uniform(low, high) if high > 0 else 0.0

    def _next(self) -> QueuedOperation | None:
        with self._lock:
            if not self._pending:
                self._processing = False
                return None
            return self._pending.popleft()

    def _drain(self) -> None:
        while True:
            op = self._next()
            if op is None:
                return
            op.attempts += 1
            try:
                result = op.operation()
            except self.retry_on as e:
                with self._lock:
                    self._pending.appendleft(op)
                    depth = len(self._pending)
                delay = self.backoff_delay(depth)
                LOG.warning(
                    "Queued call failed (attempt %d, depth %d): %s; backing off %.2fs",
                    op.attempts, depth, e, delay,
                )
                time.sleep(delay)
            except BaseException as e:
                LOG.debug("Queued call raised %s, handing to caller", type(e).__name__)
                op.future.set_exception(e)
            else:
                op.future.set_result(result)
            time.sleep(self.pacing_delay())


def call_with_timeout(fn: Callable[[], T], timeout: float, default: T) -> T:
    """Run ``fn`` on a daemon thread; return ``default`` if it is still running after ``timeout``.

    Exceptions raised by ``fn`` within the window propagate.
    """
    future: Future = Future()

    def _run():
        try:
            future.set_result(fn())
        except BaseException as e:
            future.set_exception(e)

    threading.Thread(target=_run, name="feedsync-timeout", daemon=True).start()
    try:
        return future.result(timeout)
    except FutureTimeoutError:
        LOG.warning("Remote call did not settle within %.1fs", timeout)
        return default
