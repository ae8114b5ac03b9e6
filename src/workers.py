"""Bounded worker pool with per-item retry, backoff and rate limiting.

Each call builds its own pool and tears it down before returning; nothing here outlives the call. Workers pull
items from a shared queue and push one result per item onto a result queue, so they never share mutable state.
"""

from __future__ import annotations

import concurrent.futures
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, Optional, Sequence, TypeVar

import config
import errors

logger = config.get_logger(service="workers")

T = TypeVar("T")
R = TypeVar("R")


def worker_count(items: int, pool_size: int) -> int:
    return max(0, min(pool_size, items))


def backoff_ms(attempt: int, base_ms: int) -> int:
    """Delay before the given attempt: nothing before the first one, then base * 2**attempt."""
    if attempt <= 0:
        return 0
    return base_ms * (1 << attempt)


def pause(ms: int, cancel_event: Optional[threading.Event] = None) -> None:
    """Sleep for ms milliseconds. Raises Cancelled as soon as the event is set."""
    if cancel_event is None:
        cancel_event = threading.Event()
    if cancel_event.is_set() or (ms > 0 and cancel_event.wait(ms / 1000)):
        raise errors.Cancelled("operation cancelled")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    backoff_base_ms: int = 100
    rate_limit_ms: int = 20

    @staticmethod
    def from_config(cfg: config.Config) -> RetryPolicy:
        return RetryPolicy(
            max_retries=cfg.max_retries,
            backoff_base_ms=cfg.backoff_base_ms,
            rate_limit_ms=cfg.rate_limit_ms,
        )


def call_with_retry(
    fn: Callable[[], R],
    policy: RetryPolicy,
    description: str,
    cancel_event: Optional[threading.Event] = None,
) -> R:
    """Call fn up to policy.max_retries times.

    Only TransportErrors are retried, and never a "not found" one; anything else propagates on the first
    occurrence. The rate-limit pause follows every attempt, successful or not.
    """
    last_error: Optional[Exception] = None
    for attempt in range(policy.max_retries):
        if attempt > 0:
            delay = backoff_ms(attempt, policy.backoff_base_ms)
            logger.debug(f"Retry {attempt} for {description} after {delay}ms", extra={"error": str(last_error)})
            pause(delay, cancel_event)
        try:
            result = fn()
        except errors.TransportError as e:
            if errors.is_not_found(e):
                pause(policy.rate_limit_ms, cancel_event)
                raise
            last_error = e
            pause(policy.rate_limit_ms, cancel_event)
            continue
        pause(policy.rate_limit_ms, cancel_event)
        return result

    logger.error(f"Giving up on {description} after {policy.max_retries} attempts: {last_error}")
    if last_error is None:
        raise errors.TransportError(f"{description}: no attempt was made")
    raise last_error


@dataclass(frozen=True)
class WorkResult(Generic[T, R]):
    item: T
    value: Optional[R] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_worker_pool(
    items: Sequence[T],
    work: Callable[[T], R],
    pool_size: int,
    cancel_event: Optional[threading.Event] = None,
    name: str = "worker",
) -> list[WorkResult[T, R]]:
    """Run work(item) for every item on at most pool_size threads and wait for all of them.

    An exception from one item is captured in its WorkResult and does not stop the other workers. When the
    cancel event is set, workers stop taking new items and every item that never started is reported as
    Cancelled. Result order is unspecified.
    """
    workers = worker_count(len(items), pool_size)
    if workers == 0:
        return []
    if cancel_event is None:
        cancel_event = threading.Event()

    pending: queue.Queue[T] = queue.Queue()
    for item in items:
        pending.put(item)
    done: queue.Queue[WorkResult[T, R]] = queue.Queue()

    def worker() -> None:
        while not cancel_event.is_set():
            try:
                item = pending.get_nowait()
            except queue.Empty:
                return
            try:
                done.put(WorkResult(item=item, value=work(item)))
            except Exception as e:  # noqa: BLE001
                done.put(WorkResult(item=item, error=e))

    logger.debug(f"Starting {workers} {name} workers for {len(items)} items")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix=name) as executor:
        futures = [executor.submit(worker) for _ in range(workers)]
        for future in futures:
            future.result()

    results: list[WorkResult[T, R]] = []
    while not done.empty():
        results.append(done.get_nowait())
    while not pending.empty():
        results.append(WorkResult(item=pending.get_nowait(), error=errors.Cancelled("operation cancelled before it started")))
    return results


def paginate(
    fetch_page: Callable[[int, int], Sequence[R]],
    cfg: config.Config,
    description: str,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[list[R]]:
    """Yield pages from fetch_page(limit, skip) until one comes back shorter than the page size.

    Each page is fetched with the retry policy and pages are spaced by cfg.page_delay_ms. Exactly cfg.max_pages full
    pages are fine when the page after them is empty; a non-empty page past the cap raises PaginationLimitExceeded.
    """
    policy = RetryPolicy.from_config(cfg)
    limit = cfg.page_size
    # The extra iteration only checks that the listing ended at the cap.
    for page in range(cfg.max_pages + 1):
        if page > 0:
            pause(cfg.page_delay_ms, cancel_event)
        skip = page * limit
        items = list(call_with_retry(lambda: fetch_page(limit, skip), policy, f"{description} page {page + 1}", cancel_event))  # noqa: B023
        logger.debug(f"Fetched {description} page {page + 1}", extra={"items": len(items), "skip": skip})
        if page == cfg.max_pages:
            if items:
                raise errors.PaginationLimitExceeded(description, cfg.max_pages)
            return
        yield items
        if len(items) < limit:
            return
