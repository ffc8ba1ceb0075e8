#!/usr/bin/env python3
"""
Per-Account Work Queue

Runs sync jobs on a thread pool while keeping at most one job in flight per
account. Each account has two slots: the running job and one pending job.
Submitting while a job is pending replaces the pending job and adds the
caller's callback to it, so a burst of webhooks for one item collapses into
a single follow-up sync.

Transient provider failures are retried with exponential backoff before the
callbacks see the error.
"""

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ProviderTransient

logger = logging.getLogger(__name__)

Job = Callable[[], Any]
DoneCallback = Callable[[Any, BaseException | None], None]


@dataclass
class _AccountSlot:
    running: bool = False
    pending: Job | None = None
    pending_callbacks: list[DoneCallback] = field(default_factory=list)


class AccountWorkQueue:
    """
    Bounded per-account job runner.

    Example:
        >>> queue = AccountWorkQueue(max_workers=4)
        >>> queue.submit("checking", lambda: engine.sync_account("checking"))
        True
        >>> queue.wait_idle()
    """

    def __init__(
        self,
        max_workers: int = 4,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the queue.

        Args:
            max_workers: Thread pool size (accounts synced concurrently)
            retry_attempts: Total attempts for a job failing with ProviderTransient
            retry_backoff_seconds: Delay before the first retry, doubled each time
            sleep: Delay function (tests pass a no-op)
        """
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="reconciler-sync")
        self._slots: dict[str, _AccountSlot] = {}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._closed = False

    def __enter__(self) -> "AccountWorkQueue":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def submit(self, account_id: str, job: Job, on_done: DoneCallback | None = None) -> bool:
        """
        Queue a job for an account.

        Args:
            account_id: Serialization key
            job: Zero-argument callable to run
            on_done: Called with (result, error) once the job that covers this
                submission finishes

        Returns:
            False if the submission was folded into an already-pending job
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Work queue is shut down")
            slot = self._slots.setdefault(account_id, _AccountSlot())
            callbacks = [on_done] if on_done else []

            if slot.running:
                coalesced = slot.pending is not None
                slot.pending = job
                slot.pending_callbacks.extend(callbacks)
                if coalesced:
                    logger.debug("Coalesced queued job for account %s", account_id)
                return not coalesced

            slot.running = True
            self._executor.submit(self._run, account_id, job, callbacks)
            return True

    def is_busy(self, account_id: str) -> bool:
        with self._lock:
            slot = self._slots.get(account_id)
            return bool(slot and slot.running)

    def pending_count(self) -> int:
        """Number of accounts with a job running or waiting."""
        with self._lock:
            return sum(1 for slot in self._slots.values() if slot.running)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """
        Block until no account has work running or pending.

        Returns:
            False if the timeout expired first
        """
        with self._idle:
            return self._idle.wait_for(
                lambda: not any(slot.running for slot in self._slots.values()),
                timeout=timeout,
            )

    def shutdown(self, wait: bool = True) -> None:
        if wait:
            self.wait_idle()
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def _run(self, account_id: str, job: Job, callbacks: list[DoneCallback]) -> None:
        result: Any = None
        error: BaseException | None = None
        try:
            result = self._run_with_retry(account_id, job)
        except Exception as e:
            error = e
            logger.warning("Queued job for account %s failed: %s", account_id, e)

        for callback in callbacks:
            try:
                callback(result, error)
            except Exception:
                logger.exception("Completion callback failed for account %s", account_id)

        with self._lock:
            slot = self._slots[account_id]
            if slot.pending is None:
                slot.running = False
                self._idle.notify_all()
                return
            next_job, next_callbacks = slot.pending, slot.pending_callbacks
            slot.pending, slot.pending_callbacks = None, []
            self._executor.submit(self._run, account_id, next_job, next_callbacks)

    def _run_with_retry(self, account_id: str, job: Job) -> Any:
        attempt = 1
        while True:
            try:
                return job()
            except ProviderTransient as e:
                if attempt >= self.retry_attempts:
                    raise
                delay = self.retry_backoff_seconds * (2 ** (attempt - 1))
                logger.info(
                    "Transient failure for account %s (attempt %d/%d), retrying in %.1fs: %s",
                    account_id,
                    attempt,
                    self.retry_attempts,
                    delay,
                    e.message,
                )
                self._sleep(delay)
                attempt += 1
