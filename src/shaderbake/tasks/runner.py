"""Fixed-size worker pool fed from a shared FIFO queue."""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any

from shaderbake.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _WorkItem:
    future: Future[Any]
    func: Callable[..., Any]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    def run(self) -> None:
        if not self.future.set_running_or_notify_cancel():
            return
        try:
            result = self.func(*self.args, **self.kwargs)
        except BaseException as exc:
            # the future always resolves and the worker keeps running
            self.future.set_exception(exc)
        else:
            self.future.set_result(result)


def default_worker_count() -> int:
    configured = int(get_settings().workers)
    if configured > 0:
        return configured
    return os.cpu_count() or 1


class ThreadPool:
    """Worker threads blocking on a condition variable until work or shutdown.

    ``shutdown`` drains every queued item before the workers exit.
    """

    def __init__(self, max_workers: int | None = None) -> None:
        self._max_workers = max(1, max_workers or default_worker_count())
        self._queue: deque[_WorkItem] = deque()
        self._cond = threading.Condition(threading.Lock())
        self._shutdown = False
        self._threads: list[threading.Thread] = []
        for index in range(self._max_workers):
            thread = threading.Thread(
                target=self._work, name=f"shaderbake-worker-{index}", daemon=True
            )
            thread.start()
            self._threads.append(thread)

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    def submit(self, func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future[Any]:
        future: Future[Any] = Future()
        with self._cond:
            if self._shutdown:
                logger.warning("Thread pool is shutting down; rejecting %r", func)
                raise RuntimeError("cannot schedule new work after shutdown")
            self._queue.append(_WorkItem(future=future, func=func, args=args, kwargs=kwargs))
            self._cond.notify()
        return future

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()
        for thread in self._threads:
            thread.join()
        self._threads.clear()

    def __enter__(self) -> ThreadPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _work(self) -> None:
        while True:
            with self._cond:
                while not self._queue and not self._shutdown:
                    self._cond.wait()
                if not self._queue:
                    return
                item = self._queue.popleft()
            item.run()
