"""Provides a simple threaded worker pool that completes TinyFutures.

This module implements the default execution context: a pool of worker threads
running submitted tasks, plus a thread pool running future callbacks. It also
exposes a lazily started global pool and a module-level spawn function.
"""

from concurrent.futures import ThreadPoolExecutor
import functools
import logging
import os
from queue import Queue
from threading import Thread
import threading
from typing import Any, Callable, TypeVar

from .context import ExecutionContext
from .future import TinyFuture
from .result import Failure, Result, capture

T_IN = TypeVar("T_IN")
T_OUT = TypeVar("T_OUT")

logger = logging.getLogger(__name__)

_Job = tuple[TinyFuture[Any], Callable[[], Any]]


def _run_task(future: TinyFuture[T_OUT], task: Callable[[], T_OUT]) -> None:
    future.complete(capture(task))


def _start_worker(input_queue: "Queue[_Job | None]") -> None:
    """Internal function that runs the worker's main loop."""
    while True:
        job = input_queue.get()
        if job is None:
            input_queue.put(None)
            break
        future, task = job
        _run_task(future, task)


class TinyTroupe(ExecutionContext):
    """A pool of worker threads for running tasks in parallel.

    TinyTroupe runs spawned tasks on its worker threads, completing one future per
    task, and runs future callbacks on a separate thread pool so that slow handlers
    never hold up task execution. With a single worker it behaves as a
    single-threaded event loop: tasks run one at a time in submission order.
    """

    def __init__(self, num_workers: int = 1, callback_pool_size: int = 64) -> None:
        """Initialize the worker pool.

        Args:
            num_workers: Number of parallel worker threads to create
            callback_pool_size: Size of the thread pool used for future callbacks

        Raises:
            ValueError: If num_workers is not positive
        """
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        self._num_workers = num_workers
        self._input_queue: Queue[_Job | None] = Queue()
        self._workers: list[Thread] = []
        self._started = False
        # guards _started together with the queue puts that depend on it
        self._state_lock = threading.Lock()
        self._callback_pool = ThreadPoolExecutor(
            max_workers=callback_pool_size, thread_name_prefix="tiny-futures-callback"
        )

    @property
    def started(self) -> bool:
        return self._started

    def execute(self, func: Callable[[], None]) -> None:
        self._callback_pool.submit(func)

    def spawn(self, task: Callable[..., T_OUT], *args: Any, **kwargs: Any) -> TinyFuture[T_OUT]:
        """Submit a task for execution on a worker.

        Args:
            task: Callable to run; any exception it raises fails the returned future
            args: Positional arguments for task
            kwargs: Keyword arguments for task

        Returns:
            A pending future representing the eventual result

        Raises:
            ValueError: If the troupe hasn't been started
        """
        future: TinyFuture[T_OUT] = TinyFuture(self)
        with self._state_lock:
            if not self._started:
                raise ValueError("Troupe not started")
            self._input_queue.put((future, functools.partial(task, *args, **kwargs)))
        return future

    def submit(self, func: Callable[[T_IN], T_OUT], value: T_IN | TinyFuture[T_IN]) -> TinyFuture[T_OUT]:
        """Submit func applied to a value, or to the eventual value of a future.

        When value is a future, func is queued only once it succeeds; a failure is
        propagated to the returned future without running func.

        Args:
            func: The function processing the value
            value: The input to process, or a future that will provide the input

        Returns:
            A future representing the eventual result

        Raises:
            ValueError: If the troupe hasn't been started
        """
        if not isinstance(value, TinyFuture):
            return self.spawn(func, value)
        if not self._started:
            raise ValueError("Troupe not started")

        future: TinyFuture[T_OUT] = TinyFuture(self)

        def _put_value(result: Result[T_IN]) -> None:
            if isinstance(result, Failure):
                future.complete(result)
                return
            with self._state_lock:
                queued = self._started
                if queued:
                    self._input_queue.put((future, functools.partial(func, result.value)))
            if not queued:
                future.complete(Failure(ValueError("Troupe not started")))

        value.on_complete(_put_value)
        return future

    def start(self) -> None:
        """Start the worker pool.

        Must be called before submitting tasks.

        Raises:
            ValueError: If the troupe is already started
        """
        with self._state_lock:
            if self._started:
                raise ValueError("Troupe already started")
            self._started = True

        self._workers = [
            Thread(
                target=_start_worker,
                daemon=True,
                name="tiny-futures-worker-%d" % i,
                kwargs={"input_queue": self._input_queue},
            )
            for i in range(self._num_workers)
        ]
        for worker in self._workers:
            worker.start()
        logger.debug("Started troupe with %d workers", self._num_workers)

    def stop(self) -> None:
        """Stop the worker pool.

        Tasks already queued still run to completion. Callbacks keep running on
        the callback pool, so futures completed by this troupe stay usable.

        Raises:
            ValueError: If the troupe hasn't been started
        """
        with self._state_lock:
            if not self._started:
                raise ValueError("Troupe not started")
            self._started = False
            # every job accepted so far is ahead of the sentinel
            self._input_queue.put(None)
        # not under the lock: running tasks may still call spawn
        for worker in self._workers:
            worker.join()
        # drop the sentinel so the queue can be reused by a later start()
        self._input_queue.get_nowait()
        self._workers = []
        logger.debug("Stopped troupe with %d workers", self._num_workers)

    def __enter__(self) -> "TinyTroupe":
        """Start the troupe when used as a context manager."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Stop the troupe when exiting the context manager."""
        self.stop()


_global_troupe: TinyTroupe | None = None
_global_lock = threading.Lock()


def global_troupe() -> TinyTroupe:
    """Return the process-wide troupe, starting it on first use.

    It has one worker per CPU and is never stopped; its threads are daemons.
    """
    global _global_troupe
    with _global_lock:
        if _global_troupe is None:
            troupe = TinyTroupe(num_workers=os.cpu_count() or 1)
            troupe.start()
            _global_troupe = troupe
        return _global_troupe


def spawn(
    task: Callable[..., T_OUT], *args: Any, context: ExecutionContext | None = None, **kwargs: Any
) -> TinyFuture[T_OUT]:
    """Run task asynchronously and return a future of its result.

    Args:
        task: Callable to run; any exception it raises fails the returned future
        args: Positional arguments for task
        context: Where to run the task, the global troupe by default
        kwargs: Keyword arguments for task

    Returns:
        A future completed by whichever execution unit runs task
    """
    if context is None:
        context = global_troupe()
    if isinstance(context, TinyTroupe):
        return context.spawn(task, *args, **kwargs)
    future: TinyFuture[T_OUT] = TinyFuture(context)
    context.execute(functools.partial(_run_task, future, functools.partial(task, *args, **kwargs)))
    return future
