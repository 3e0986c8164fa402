"""Thread-based synchronisation helpers and a work-stealing worker pool."""

from __future__ import annotations

import logging
import os
import random
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")

_log = logging.getLogger(__name__)


class BoundedQueue(Generic[T]):
    """A thread-safe FIFO with a fixed capacity; stealing takes from the back."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)

    def put(self, item: T) -> None:
        """Append ``item``, blocking while the queue is full."""
        with self._not_full:
            self._not_full.wait_for(lambda: len(self._items) < self.capacity)
            self._items.append(item)
            self._not_empty.notify()

    def get(self) -> T:
        """Remove and return the front item, blocking while empty."""
        with self._not_empty:
            self._not_empty.wait_for(lambda: bool(self._items))
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def try_get(self) -> Optional[T]:
        """Remove the front item, or return ``None`` when empty."""
        with self._lock:
            if not self._items:
                return None
            item = self._items.popleft()
            self._not_full.notify()
            return item

    def try_steal(self) -> Optional[T]:
        """Remove the back item, or return ``None`` when empty."""
        with self._lock:
            if not self._items:
                return None
            item = self._items.pop()
            self._not_full.notify()
            return item

    def empty(self) -> bool:
        with self._lock:
            return not self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class Semaphore:
    """A counting semaphore with blocking and non-blocking acquire."""

    def __init__(self, count: int = 0) -> None:
        self._count = count
        self._cond = threading.Condition()

    def signal(self) -> None:
        with self._cond:
            self._count += 1
            self._cond.notify()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._count > 0)
            self._count -= 1

    def try_wait(self) -> bool:
        with self._cond:
            if self._count > 0:
                self._count -= 1
                return True
            return False


class _Call:
    __slots__ = ("done", "value", "error")

    def __init__(self) -> None:
        self.done = threading.Event()
        self.value: Any = None
        self.error: Optional[BaseException] = None

    def result(self) -> Any:
        self.done.wait()
        if self.error is not None:
            raise self.error
        return self.value


class SingleFlight:
    """Collapses concurrent calls for the same key into one execution."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, _Call] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> T:
        """Run ``fn`` unless a call for ``key`` is in flight; share its outcome."""
        with self._lock:
            call = self._calls.get(key)
            if call is None:
                call = self._calls[key] = _Call()
                owner = True
            else:
                owner = False
        if not owner:
            return call.result()

        try:
            call.value = fn()
        except BaseException as exc:  # shared with every waiter
            call.error = exc
        finally:
            with self._lock:
                if self._calls.get(key) is call:
                    del self._calls[key]
            call.done.set()
        return call.result()

    def try_piggyback(self, key: Hashable) -> Optional[Any]:
        """Wait for an in-flight call for ``key``; ``None`` if there is none."""
        with self._lock:
            call = self._calls.get(key)
        if call is None:
            return None
        return call.result()

    def forget(self, key: Hashable) -> None:
        """Drop ``key`` so the next call runs afresh."""
        with self._lock:
            self._calls.pop(key, None)


class WorkerPool:
    """Worker threads, each with its own bounded queue, stealing when idle."""

    def __init__(self, num_workers: Optional[int] = None, queue_size: int = 1024) -> None:
        self.num_workers = num_workers if num_workers is not None else (os.cpu_count() or 1)
        if self.num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        self._queues = [BoundedQueue[Callable[[], Any]](queue_size) for _ in range(self.num_workers)]
        self._threads: list[threading.Thread] = []
        self._running = threading.Event()
        self._state_lock = threading.Lock()
        self._next = 0
        self._next_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        with self._state_lock:
            if self._running.is_set():
                return
            self._running.set()
            self._threads = [
                threading.Thread(target=self._worker_loop, args=(i,), daemon=True, name=f"worker-{i}")
                for i in range(self.num_workers)
            ]
            for thread in self._threads:
                thread.start()

    def stop(self) -> None:
        """Stop the workers; each drains its own queue before exiting."""
        with self._state_lock:
            if not self._running.is_set():
                return
            self._running.clear()
            for thread in self._threads:
                thread.join()
            self._threads = []

    def submit(self, job: Callable[[], Any]) -> bool:
        """Queue ``job`` round-robin; ``False`` if the pool is not running."""
        if not self._running.is_set():
            return False
        with self._next_lock:
            index = self._next % self.num_workers
            self._next += 1
        self._queues[index].put(job)
        return True

    def submit_to(self, worker_id: int, job: Callable[[], Any]) -> bool:
        """Queue ``job`` on one worker; ``False`` if stopped or id out of range."""
        if not self._running.is_set() or not 0 <= worker_id < self.num_workers:
            return False
        self._queues[worker_id].put(job)
        return True

    def __enter__(self) -> "WorkerPool":
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()

    @staticmethod
    def _run(job: Callable[[], Any]) -> None:
        try:
            job()
        except Exception:
            _log.exception("job raised")

    def _worker_loop(self, worker_id: int) -> None:
        rng = random.Random()
        local = self._queues[worker_id]
        while self._running.is_set():
            job = local.try_get()
            if job is None:
                job = self._try_steal(worker_id, rng)
            if job is not None:
                self._run(job)
            else:
                time.sleep(0.0005)
        while (job := local.try_get()) is not None:
            self._run(job)

    def _try_steal(self, self_id: int, rng: random.Random) -> Optional[Callable[[], Any]]:
        if self.num_workers <= 1:
            return None
        victim = rng.randrange(self.num_workers - 1)
        if victim >= self_id:
            victim += 1
        return self._queues[victim].try_steal()