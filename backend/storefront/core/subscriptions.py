"""
Cancellable live subscriptions

A Subscription is a lazy sequence of snapshots. Each snapshot is the full
result of the subscribed query at the time a change was observed, so a
consumer never has to apply deltas.

The caller owns the handle and must cancel it on teardown; cancelling
releases the underlying connection and ends iteration.

    with repository.subscribe(OrderFilter(is_read=False)) as handle:
        for snapshot in handle:
            render(snapshot)

Author: TM3
Date: 2025-12-02
"""
import logging
from collections import deque
from typing import Deque, Generic, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Blocking waits are split in slices so cancel() is noticed promptly
_WAIT_SLICE_SECONDS = 1.0


class Subscription(Generic[T]):
    """
    Base handle for a live query.

    Subclasses implement `_wait(timeout)`, returning the next snapshot or
    None if nothing changed within timeout, and optionally `_release()`.
    Snapshots queued with `_push` are delivered first, in order.
    """

    def __init__(self):
        self._pending: Deque[T] = deque()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def poll(self, timeout: Optional[float] = 0.0) -> Optional[T]:
        """
        Next snapshot, or None if none arrives within timeout.

        timeout=0 never blocks; timeout=None blocks until a snapshot arrives
        or the handle is cancelled.
        """
        if self._cancelled:
            return None
        if self._pending:
            return self._pending.popleft()

        if timeout is not None:
            return self._wait(timeout)

        while not self._cancelled:
            snapshot = self._wait(_WAIT_SLICE_SECONDS)
            if snapshot is not None:
                return snapshot
        return None

    def cancel(self):
        """Stop the subscription and release its resources. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        self._pending.clear()
        self._release()
        logger.debug(f"{type(self).__name__} cancelled")

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        snapshot = self.poll(timeout=None)
        if snapshot is None:
            raise StopIteration
        return snapshot

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()
        return False

    def _push(self, snapshot: T):
        if not self._cancelled:
            self._pending.append(snapshot)

    def _wait(self, timeout: float) -> Optional[T]:
        raise NotImplementedError

    def _release(self):
        pass
