"""Provides a lightweight Future implementation for composing asynchronous results.

A TinyFuture holds a value that will be available at some point in the future. It
is completed exactly once, with a Success or a Failure, and supports callbacks and
non-blocking combinators (map, flat_map, recover, and_then, zip) in addition to a
blocking wait.
"""

import functools
import threading
from typing import Any, Callable, Generic, Iterable, TypeVar
import uuid

from .context import ExecutionContext, InlineContext
from .result import Failure, Result, Success, capture

T = TypeVar("T")
U = TypeVar("U")
V = TypeVar("V")


def _run_handler(
    context: ExecutionContext, handler: Callable[[Result[T]], None], result: Result[T]
) -> None:
    try:
        handler(result)
    except Exception as e:
        context.report_failure(e)


class TinyFuture(Generic[T]):
    """A Future representing an eventual result of an asynchronous operation.

    Provides a way to check completion status, retrieve results when ready,
    register callbacks, and derive new futures from this one without blocking.
    """

    def __init__(self, context: ExecutionContext, uid: str | None = None) -> None:
        """Initialize a new, pending Future.

        Args:
            context: Execution context running the callbacks of this future and
                of every future derived from it
            uid: Unique identifier for this future, generated if omitted
        """
        self._uid = uid or str(uuid.uuid4())
        self._context = context
        self._value: Result[T] | None = None
        self._callbacks: list[Callable[[Result[T]], None]] = []
        self._lock = threading.Lock()
        self._is_done = threading.Event()

    @classmethod
    def successful(cls, value: T, context: ExecutionContext | None = None) -> "TinyFuture[T]":
        """Build a future already completed with value."""
        future: TinyFuture[T] = cls(context or InlineContext())
        future.complete(Success(value))
        return future

    @classmethod
    def failed(cls, error: Exception, context: ExecutionContext | None = None) -> "TinyFuture[Any]":
        """Build a future already failed with error."""
        future: TinyFuture[Any] = cls(context or InlineContext())
        future.complete(Failure(error))
        return future

    def __repr__(self) -> str:
        if self._value is None:
            state = "pending"
        elif isinstance(self._value, Success):
            state = "success"
        else:
            state = "failure error=%r" % self._value.error
        return "<TinyFuture %s at %s state=%s>" % (self._uid, hex(id(self)), state)

    @property
    def uid(self) -> str:
        return self._uid

    @property
    def context(self) -> ExecutionContext:
        return self._context

    # Write side

    def try_complete(self, result: Result[T]) -> bool:
        """Complete this Future unless it already completed.

        Exactly one caller wins when several race to complete the same future.
        Pending callbacks are handed to the execution context once the result is
        stored.

        Args:
            result: Success or Failure to store

        Returns:
            True if this call completed the future, False if it already had a result
        """
        with self._lock:
            if self._value is not None:
                return False
            self._value = result
            callbacks, self._callbacks = self._callbacks, []
        self._is_done.set()
        for callback in callbacks:
            self._dispatch(callback, result)
        return True

    def complete(self, result: Result[T]) -> None:
        """Complete this Future with a result.

        Once set, the result cannot be changed and all registered callbacks will be executed.

        Args:
            result: Success or Failure to store

        Raises:
            ValueError: If the Future already has a result
        """
        if not self.try_complete(result):
            raise ValueError("Future already has a result. This should not happen.")

    def set_result(self, value: T) -> None:
        self.complete(Success(value))

    def set_exception(self, error: Exception) -> None:
        self.complete(Failure(error))

    # Read side

    @property
    def done(self) -> bool:
        """Whether this Future has completed.

        Returns:
            True if the Future has a result or exception set, False if still pending
        """
        return self._is_done.is_set()

    @property
    def value(self) -> Result[T] | None:
        """The Success or Failure of this Future, or None while pending."""
        return self._value

    def ready(self, timeout: float | None = None) -> "TinyFuture[T]":
        """Block until this Future completes, without raising its error.

        Args:
            timeout: Maximum seconds to wait, or None to wait forever

        Returns:
            This Future, now completed

        Raises:
            TimeoutError: If the timeout is reached before completion
        """
        if not self._is_done.wait(timeout):
            raise TimeoutError("%r did not complete within %s seconds" % (self, timeout))
        return self

    def result(self, timeout: float | None = None) -> T:
        """Retrieve the result of this Future, waiting if necessary.

        Blocks until the result is available or timeout occurs. If the Future
        failed, the captured exception is raised.

        Args:
            timeout: Maximum seconds to wait for the result, or None to wait forever

        Returns:
            The result value

        Raises:
            TimeoutError: If the timeout is reached before completion
            Exception: If the Future completed with an exception
        """
        self.ready(timeout)
        assert self._value is not None  # for type checker
        return self._value.get()

    def exception(self, timeout: float | None = None) -> Exception | None:
        """Like result, but returns the captured exception instead of raising it."""
        self.ready(timeout)
        if isinstance(self._value, Failure):
            return self._value.error
        return None

    def is_ready_within(self, timeout: float) -> bool:
        """Whether this Future completes within timeout seconds."""
        return self._is_done.wait(timeout)

    # Callbacks

    def _dispatch(self, handler: Callable[[Result[T]], None], result: Result[T]) -> None:
        self._context.execute(functools.partial(_run_handler, self._context, handler, result))

    def on_complete(self, handler: Callable[[Result[T]], None]) -> None:
        """Register a function to call with the final Success or Failure.

        The handler runs exactly once on the execution context, whether it was
        registered before or after this Future completed. Errors raised by the
        handler are reported to the context and do not affect the Future.

        Args:
            handler: Function to call with the Future's result when ready
        """
        with self._lock:
            if self._value is None:
                self._callbacks.append(handler)
                return
            result = self._value
        self._dispatch(handler, result)

    def add_callback(self, callback: Callable[[T | Exception], None]) -> None:
        """Register a function receiving either the result value or the exception."""

        def _unwrap(result: Result[T]) -> None:
            if isinstance(result, Failure):
                callback(result.error)
            else:
                callback(result.value)

        self.on_complete(_unwrap)

    # Combinators

    def _derive(self) -> "TinyFuture[Any]":
        return TinyFuture(self._context)

    def map(self, func: Callable[[T], U]) -> "TinyFuture[U]":
        """Derive a future holding func applied to this Future's value.

        A failure of this Future propagates unchanged, and an exception raised by
        func fails the derived future instead.
        """
        promise: TinyFuture[U] = self._derive()

        def _map(result: Result[T]) -> None:
            if isinstance(result, Failure):
                promise.complete(result)
            else:
                promise.complete(capture(func, result.value))

        self.on_complete(_map)
        return promise

    def flat_map(self, func: Callable[[T], "TinyFuture[U]"]) -> "TinyFuture[U]":
        """Derive a future from the future returned by func.

        The derived future completes with whatever the inner future completes
        with, so dependent asynchronous steps can be chained without nesting
        callbacks.
        """
        promise: TinyFuture[U] = self._derive()

        def _flat_map(result: Result[T]) -> None:
            if isinstance(result, Failure):
                promise.complete(result)
            else:
                _complete_from(promise, capture(func, result.value))

        self.on_complete(_flat_map)
        return promise

    def recover(
        self, handler: Callable[[Exception], T], *exc_types: type[Exception]
    ) -> "TinyFuture[T]":
        """Turn a failure into a value.

        The handler only applies to errors matching exc_types (any Exception when
        none are given); other failures, and successful results, pass through.

        Args:
            handler: Function mapping the error to a replacement value
            exc_types: Exception classes the handler accepts
        """
        accepted = exc_types or (Exception,)
        promise: TinyFuture[T] = self._derive()

        def _recover(result: Result[T]) -> None:
            if isinstance(result, Failure) and isinstance(result.error, accepted):
                promise.complete(capture(handler, result.error))
            else:
                promise.complete(result)

        self.on_complete(_recover)
        return promise

    def recover_with(
        self, handler: Callable[[Exception], "TinyFuture[T]"], *exc_types: type[Exception]
    ) -> "TinyFuture[T]":
        """Like recover, but handler returns a future to fall back on."""
        accepted = exc_types or (Exception,)
        promise: TinyFuture[T] = self._derive()

        def _recover_with(result: Result[T]) -> None:
            if isinstance(result, Failure) and isinstance(result.error, accepted):
                _complete_from(promise, capture(handler, result.error))
            else:
                promise.complete(result)

        self.on_complete(_recover_with)
        return promise

    def and_then(self, side_effect: Callable[[Result[T]], Any]) -> "TinyFuture[T]":
        """Run side_effect once this Future completes, keeping its result.

        The derived future always completes with this Future's result: whatever
        side_effect returns is discarded, and if it raises, the error is reported
        to the execution context. Chained and_then calls run in order.
        """
        promise: TinyFuture[T] = self._derive()

        def _and_then(result: Result[T]) -> None:
            try:
                side_effect(result)
            except Exception as e:
                self._context.report_failure(e)
            promise.complete(result)

        self.on_complete(_and_then)
        return promise

    def zip(self, other: "TinyFuture[U]") -> "TinyFuture[tuple[T, U]]":
        """Pair the values of this Future and other."""
        return self.zip_with(other, lambda a, b: (a, b))

    def zip_with(self, other: "TinyFuture[U]", func: Callable[[T, U], V]) -> "TinyFuture[V]":
        """Combine the values of this Future and other with func.

        Equivalent to binding both values in sequence and yielding func(a, b); the
        first failure, in that order, fails the result.
        """
        return self.flat_map(lambda a: other.map(lambda b: func(a, b)))


def _complete_from(promise: TinyFuture[T], inner: "Result[TinyFuture[T]]") -> None:
    """Complete promise with the eventual result of the future held by inner."""
    if isinstance(inner, Failure):
        promise.complete(inner)
    elif not isinstance(inner.value, TinyFuture):
        promise.complete(Failure(TypeError("expected a TinyFuture, got %r" % (inner.value,))))
    else:
        inner.value.on_complete(promise.complete)


def sequence(
    futures: Iterable[TinyFuture[T]], context: ExecutionContext | None = None
) -> TinyFuture[list[T]]:
    """Collect the values of futures, in input order, into a single future.

    The result fails with the first failure in input order.

    Args:
        futures: Futures to collect
        context: Execution context of the result, defaults to that of the first future
    """
    futures = list(futures)
    if context is None:
        context = futures[0].context if futures else InlineContext()
    collected: TinyFuture[list[T]] = TinyFuture.successful([], context)
    for future in futures:
        collected = collected.zip_with(future, lambda values, value: values + [value])
    return collected
