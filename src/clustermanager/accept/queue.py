"""
Keyed work queue with delayed and backoff requeue.

The queue carries cluster names to the admission workers and provides
the guarantees the reconcile loop relies on:
- A key added while already queued is coalesced into one entry
- A key added while a worker processes it is queued again only after
  done() is called, so one key is never processed concurrently
- add_after() schedules a delayed add (precondition not met yet)
- add_rate_limited() schedules a delayed add with exponential backoff
  and jitter, dropping the key after max_attempts failures
- forget() resets the backoff after a successful attempt

Example:
    queue = WorkQueue()
    queue.add("edge-1")
    key = await queue.get()
    try:
        ...
    finally:
        queue.done(key)
"""

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class QueueShutdown(Exception):
    """Raised by WorkQueue.get() once the queue has been shut down."""


@dataclass
class RetryConfig:
    """
    Backoff configuration for failed reconcile attempts.

    Uses exponential backoff with jitter so clusters failing on the same
    API outage do not all retry at the same instant.

    Attributes:
        max_attempts: Failures tolerated before a key is dropped (default 5)
        min_wait_seconds: Wait before the first retry (default 1.0)
        max_wait_seconds: Cap on the wait between retries (default 60.0)
        exponential_base: Base for exponential calculation (default 2.0)
        jitter_fraction: Fraction of wait time to add as jitter (default 0.5)

    Example:
        config = RetryConfig(max_attempts=5, min_wait_seconds=2.0)
        delay = config.calculate_delay(attempt=1)
        # ~4-6 seconds (4s base + jitter)
    """

    max_attempts: int = 5
    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 60.0
    exponential_base: float = 2.0
    jitter_fraction: float = 0.5

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate the retry delay with exponential backoff + jitter.

        Formula: min(max_wait, min_wait * base^attempt) + random(0, wait * jitter)

        Args:
            attempt: The attempt number (0 for first retry, 1 for second, etc.)

        Returns:
            Delay in seconds
        """
        wait = min(
            self.max_wait_seconds,
            self.min_wait_seconds * (self.exponential_base**attempt),
        )
        jitter = random.uniform(0, wait * self.jitter_fraction)
        return wait + jitter

    def should_retry(self, retry_count: int) -> bool:
        """True if retry_count < max_attempts."""
        return retry_count < self.max_attempts


class WorkQueue:
    """
    asyncio work queue keyed by string.

    A key lives in at most one of three places: the ready queue, the
    processing set, or neither. The dirty set records keys that must be
    (re)queued; for a key being processed the re-add is deferred to done().
    """

    def __init__(self, retry: RetryConfig | None = None) -> None:
        self.retry = retry if retry is not None else RetryConfig()
        self._queue: deque[str] = deque()
        self._dirty: set[str] = set()
        self._processing: set[str] = set()
        self._failures: dict[str, int] = {}
        self._delayed: set[asyncio.TimerHandle] = set()
        self._ready = asyncio.Event()
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, key: str) -> None:
        """Queue a key unless it is already queued."""
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._ready.set()

    def add_after(self, key: str, delay: float) -> None:
        """Queue a key after delay seconds."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return

        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def fire() -> None:
            self._delayed.discard(handle)
            self.add(key)

        handle = loop.call_later(delay, fire)
        self._delayed.add(handle)

    def add_rate_limited(self, key: str) -> bool:
        """
        Queue a key after its backoff delay.

        Returns:
            False if the key exhausted its attempts and was dropped.
        """
        failures = self._failures.get(key, 0)
        if not self.retry.should_retry(failures):
            logger.error(f"Dropping {key} after {failures} failed attempts")
            self._failures.pop(key, None)
            return False

        self._failures[key] = failures + 1
        delay = self.retry.calculate_delay(failures)
        logger.info(f"Requeueing {key} in {delay:.1f}s (attempt {failures + 1})")
        self.add_after(key, delay)
        return True

    def forget(self, key: str) -> None:
        """Reset the failure count of a key."""
        self._failures.pop(key, None)

    def num_requeues(self, key: str) -> int:
        return self._failures.get(key, 0)

    async def get(self) -> str:
        """
        Wait for the next key and mark it as processing.

        Raises:
            QueueShutdown: Once shutdown() has been called.
        """
        while True:
            if self._shutting_down:
                raise QueueShutdown()
            if self._queue:
                key = self._queue.popleft()
                self._processing.add(key)
                self._dirty.discard(key)
                return key
            self._ready.clear()
            await self._ready.wait()

    def done(self, key: str) -> None:
        """Mark a key as processed, requeueing it if it was added meanwhile."""
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            self._ready.set()

    def shutdown(self) -> None:
        """Stop handing out keys and cancel pending delayed adds."""
        self._shutting_down = True
        for handle in self._delayed:
            handle.cancel()
        self._delayed.clear()
        self._ready.set()
