"""
Cooperative cancellation for multi-step writes.

An OperationContext is passed into repository writes; the transaction
helper and the item loops call ``check()`` at each stage, and a hit rolls
back the whole write.
"""

import threading
import time
from typing import Callable, Optional

from .errors import OperationCancelledError, OperationTimeoutError


class OperationContext:
    """
    Cancellation signal with an optional deadline.

    Args:
        timeout: Seconds from construction until the operation times out
                 (None = no deadline).
        clock: Monotonic clock, injectable for tests.

    Usage:
        >>> ctx = OperationContext(timeout=2.0)
        >>> repos.quotations.create(quotation, ctx=ctx)

    Explicit cancellation wins over the deadline when both have fired.
    """

    def __init__(self, timeout: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._cancelled = threading.Event()
        self.deadline = None if timeout is None else clock() + timeout

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    def check(self, stage: str = "") -> None:
        """Raise OperationCancelledError / OperationTimeoutError if the signal fired."""
        if self.cancelled:
            raise OperationCancelledError(stage)
        if self.expired:
            raise OperationTimeoutError(stage)


def check_context(ctx: Optional[OperationContext], stage: str) -> None:
    if ctx is not None:
        ctx.check(stage)
