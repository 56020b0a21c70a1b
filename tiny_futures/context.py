"""Execution contexts decide where future callbacks run.

A TinyFuture never runs its own handlers; it hands them to the execution context
it was created with. Swapping the context swaps the scheduler.
"""

from abc import ABC, abstractmethod
from collections import deque
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

# Callables queued by nested InlineContext.execute calls, per thread.
_inline_batch = threading.local()


class ExecutionContext(ABC):
    """Base class for anything able to run scheduled callables."""

    @abstractmethod
    def execute(self, func: Callable[[], None]) -> None:
        """Schedule func to run, now or at some later point.

        Args:
            func: A callable taking no arguments
        """
        pass

    def report_failure(self, error: Exception) -> None:
        """Called when a handler run by this context raised."""
        logger.error("Uncaught error in future callback: %r", error, exc_info=error)


class InlineContext(ExecutionContext):
    """Runs callables on the calling thread.

    The outermost execute call runs func before returning. Calls made while it
    runs, from any InlineContext on the same thread, are queued and run in order
    by that outermost call, so completing a long chain of futures never grows the
    stack.
    """

    def execute(self, func: Callable[[], None]) -> None:
        pending = getattr(_inline_batch, "pending", None)
        if pending is not None:
            pending.append(func)
            return

        pending = _inline_batch.pending = deque([func])
        try:
            while pending:
                try:
                    pending.popleft()()
                except Exception as e:
                    self.report_failure(e)
        finally:
            _inline_batch.pending = None
