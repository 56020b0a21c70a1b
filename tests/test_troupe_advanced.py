# tests/test_troupe_advanced.py
import threading

import pytest
from tiny_futures.future import TinyFuture
from tiny_futures.worker import TinyTroupe, global_troupe, spawn


def test_future_chaining():
    """Test chaining results between multiple Troupes using TinyFutures."""

    def add_one(x: int) -> int:
        return x + 1

    def multiply_two(x: int) -> int:
        return x * 2

    add_troupe = TinyTroupe()
    mul_troupe = TinyTroupe()

    add_troupe.start()
    mul_troupe.start()

    # Chain operations: (5 + 1) * 2 == 12
    future1 = add_troupe.submit(add_one, 5)
    future2 = mul_troupe.submit(multiply_two, future1)

    assert future2.result() == 12

    add_troupe.stop()
    mul_troupe.stop()


def test_deep_future_chaining():
    def add_one(x: int) -> int:
        return x + 1

    troupe = TinyTroupe()
    troupe.start()

    current_future = troupe.submit(add_one, 0)
    # Do 9 times, so total increments = 10
    for _ in range(9):
        current_future = troupe.submit(add_one, current_future)

    result = current_future.result()
    assert result == 10
    troupe.stop()


def test_chained_submit_skips_func_on_upstream_failure():
    calls = []

    def failing_func(x):
        raise ValueError("Test error")

    with TinyTroupe() as troupe:
        upstream = troupe.spawn(failing_func, 1)
        downstream = troupe.submit(calls.append, upstream)
        with pytest.raises(ValueError, match="Test error"):
            downstream.result(timeout=5)

    assert calls == []


def test_chained_submit_after_stop_fails():
    gate = TinyFuture(TinyTroupe())
    troupe = TinyTroupe()
    troupe.start()
    downstream = troupe.submit(lambda x: x, gate)
    troupe.stop()

    gate.set_result(1)
    with pytest.raises(ValueError, match="Troupe not started"):
        downstream.result(timeout=5)


def test_stop_racing_submissions_leaves_no_future_pending():
    """
    Every future handed out by spawn or submit completes, even when stop()
    runs concurrently with the submissions.
    """
    for _ in range(20):
        troupe = TinyTroupe(num_workers=2)
        troupe.start()
        upstream = TinyFuture(TinyTroupe())
        accepted = []
        go = threading.Event()

        def producer():
            go.wait()
            while True:
                try:
                    accepted.append(troupe.spawn(lambda: "ran"))
                    accepted.append(troupe.submit(lambda x: x, upstream))
                except ValueError:
                    return

        threads = [threading.Thread(target=producer) for _ in range(4)]
        for thread in threads:
            thread.start()
        go.set()
        troupe.stop()
        for thread in threads:
            thread.join()
        upstream.set_result("upstream")

        for future in accepted:
            assert future.is_ready_within(5), future
            if future.exception() is not None:
                assert isinstance(future.exception(), ValueError)


def test_error_handling():
    """Test that exceptions raised in the task propagate to the caller."""

    def failing_func(x):
        raise ValueError("Test error")

    troupe = TinyTroupe()
    troupe.start()

    future = troupe.spawn(failing_func, 42)
    with pytest.raises(ValueError, match="Test error"):
        future.result()

    troupe.stop()


def test_tasks_run_on_worker_threads():
    with TinyTroupe(num_workers=2) as troupe:
        name = troupe.spawn(lambda: threading.current_thread().name).result(timeout=5)
    assert name.startswith("tiny-futures-worker-")


def test_global_troupe_is_shared_and_started():
    troupe = global_troupe()
    assert troupe is global_troupe()
    assert troupe.started
    assert spawn(lambda: "hello").result(timeout=5) == "hello"
