import threading
import time

import pytest

from nebulastore.concurrency import BoundedQueue, Semaphore, SingleFlight, WorkerPool


def test_queue_is_fifo_and_steal_is_lifo():
    queue = BoundedQueue(4)
    for item in ("a", "b", "c"):
        queue.put(item)
    assert len(queue) == 3
    assert queue.get() == "a"
    assert queue.try_steal() == "c"
    assert queue.try_get() == "b"
    assert queue.empty()
    assert queue.try_get() is None
    assert queue.try_steal() is None


def test_queue_rejects_zero_capacity():
    with pytest.raises(ValueError):
        BoundedQueue(0)


def test_put_blocks_until_space():
    queue = BoundedQueue(1)
    queue.put(1)
    done = threading.Event()

    def producer():
        queue.put(2)
        done.set()

    thread = threading.Thread(target=producer)
    thread.start()
    assert not done.wait(0.05)
    assert queue.get() == 1
    assert done.wait(2)
    thread.join(2)
    assert queue.get() == 2


def test_get_blocks_until_item():
    queue = BoundedQueue(2)
    received = []
    thread = threading.Thread(target=lambda: received.append(queue.get()))
    thread.start()
    time.sleep(0.05)
    assert received == []
    assert len(queue) == 0
    queue.put("x")
    thread.join(2)
    assert received == ["x"]
    assert len(queue) == 0
    assert queue.empty()


def test_semaphore_try_wait_counts():
    sem = Semaphore()
    assert not sem.try_wait()
    sem.signal()
    sem.signal()
    assert sem.try_wait()
    assert sem.try_wait()
    assert not sem.try_wait()


def test_semaphore_wait_released_by_signal():
    sem = Semaphore(0)
    acquired = threading.Event()

    def waiter():
        sem.wait()
        acquired.set()

    thread = threading.Thread(target=waiter)
    thread.start()
    assert not acquired.wait(0.05)
    sem.signal()
    assert acquired.wait(2)
    thread.join(2)
    assert not sem.try_wait()


def test_single_flight_shares_result():
    flight = SingleFlight()
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow():
        calls.append(1)
        started.set()
        release.wait(5)
        return "value"

    results = []
    first = threading.Thread(target=lambda: results.append(flight.do("k", slow)))
    first.start()
    assert started.wait(2)
    second = threading.Thread(target=lambda: results.append(flight.do("k", lambda: "other")))
    second.start()
    time.sleep(0.1)
    release.set()
    first.join(2)
    second.join(2)
    assert results == ["value", "value"]
    assert calls == [1]
    assert flight.try_piggyback("k") is None
    assert flight.do("k", lambda: "next") == "next"


def test_single_flight_propagates_exception_and_resets():
    flight = SingleFlight()

    def failing():
        raise ValueError("bad")

    with pytest.raises(ValueError):
        flight.do("k", failing)
    assert flight.do("k", lambda: 42) == 42


def test_try_piggyback_without_call_returns_none():
    flight = SingleFlight()
    assert flight.try_piggyback("missing") is None
    flight.forget("missing")
    assert flight.do("missing", lambda: "fresh") == "fresh"


def test_try_piggyback_waits_for_in_flight_call():
    flight = SingleFlight()
    started = threading.Event()
    release = threading.Event()

    def slow():
        started.set()
        release.wait(5)
        return "shared"

    thread = threading.Thread(target=lambda: flight.do("k", slow))
    thread.start()
    assert started.wait(2)
    timer = threading.Timer(0.05, release.set)
    timer.start()
    assert flight.try_piggyback("k") == "shared"
    thread.join(2)


def test_pool_rejects_submit_when_not_running():
    pool = WorkerPool(num_workers=2)
    assert not pool.submit(lambda: None)
    with pool:
        assert not pool.submit_to(5, lambda: None)
        assert not pool.submit_to(-1, lambda: None)
    assert not pool.submit(lambda: None)


def test_pool_runs_every_job():
    counter = []
    lock = threading.Lock()

    def job():
        with lock:
            counter.append(1)

    with WorkerPool(num_workers=3, queue_size=16) as pool:
        assert pool.num_workers == 3
        for _ in range(50):
            assert pool.submit(job)
        assert pool.submit_to(1, job)
    assert len(counter) == 51
    assert not pool.running


def test_pool_survives_failing_job():
    done = threading.Event()

    def boom():
        raise RuntimeError("job failure")

    with WorkerPool(num_workers=1) as pool:
        pool.submit(boom)
        pool.submit(done.set)
        assert done.wait(2)


def test_pool_rejects_zero_workers():
    with pytest.raises(ValueError):
        WorkerPool(num_workers=0)