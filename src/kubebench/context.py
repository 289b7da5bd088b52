#!/usr/bin/env python3
"""
Run context for a single scan.

A RunContext carries the caller's cancellation signal and an optional
absolute deadline. It is passed to every cluster call so that a cancelled
scan unblocks promptly, whether it is waiting for the Job or reading logs:
- waits between status checks return as soon as the context is cancelled
- read-only API requests run through call(), which stops waiting on cancel
- streams registered with on_cancel() are closed on cancel, which aborts
  a blocked read
"""

import logging
import threading
import time
from datetime import timedelta
from typing import Any, Callable, List, Optional, TypeVar, Union

from .errors import ScanCancelled


LOGGER = logging.getLogger("kubebench.context")

T = TypeVar("T")


class RunContext:
    """
    Cancellation and deadline holder, safe to share between threads.

    Usage:
        ctx = RunContext.with_timeout(600)
        # from another thread: ctx.cancel()
    """

    def __init__(self, deadline: Optional[float] = None):
        """
        Initialize the context.

        Args:
            deadline: Absolute time.monotonic() value after which the context
                counts as expired, or None for no deadline
        """
        self.deadline = deadline
        self._cancelled = threading.Event()
        self._reason: Optional[str] = None
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], Any]] = []

    @classmethod
    def background(cls) -> "RunContext":
        """Context that is never cancelled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, timeout: Union[int, float, timedelta]) -> "RunContext":
        """Context that expires `timeout` seconds from now."""
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        return cls(deadline=time.monotonic() + float(timeout))

    def cancel(self, reason: str = "context cancelled") -> None:
        """Cancel the context, wake up any waiter and run on_cancel callbacks."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._reason = reason
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            self._run_callback(callback)

    def on_cancel(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Register a callback to run when cancel() is called.

        The callback runs at once if the context is already cancelled.
        A deadline passing does not run callbacks; requests made with
        request_timeout() time out on their own by then.

        Args:
            callback: Function without arguments, e.g. a stream's close

        Returns:
            Function that unregisters the callback
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                registered = True
            else:
                registered = False

        if not registered:
            self._run_callback(callback)

        def remove() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return remove

    def _run_callback(self, callback: Callable[[], Any]) -> None:
        try:
            callback()
        except Exception as e:  # noqa: BLE001
            LOGGER.warning("Cancel callback %r failed: %s", callback, e)

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called or the deadline passed."""
        return self._cancelled.is_set() or self.expired

    @property
    def reason(self) -> Optional[str]:
        if self._cancelled.is_set():
            return self._reason
        if self.expired:
            return "context deadline exceeded"
        return None

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def request_timeout(self, default: Optional[float]) -> Optional[float]:
        """
        Per-request timeout for an API call.

        Args:
            default: Configured per-request timeout (seconds) or None

        Returns:
            The smaller of the default and the time left on the context
        """
        remaining = self.remaining()
        if remaining is None:
            return default
        if default is None:
            return remaining
        return min(default, remaining)

    def check(self, cause: Optional[BaseException] = None) -> None:
        """
        Raise ScanCancelled if the context is done.

        Args:
            cause: Error to chain, when the check follows a failed request

        Raises:
            ScanCancelled: If cancel() was called or the deadline passed
        """
        if not self.cancelled:
            return
        error = ScanCancelled(self.reason or "context cancelled")
        if cause is not None:
            raise error from cause
        raise error

    def wait(self, interval: float) -> bool:
        """
        Sleep for up to `interval` seconds, returning early on cancellation.

        Returns:
            True if the context is done after the wait
        """
        remaining = self.remaining()
        if remaining is not None:
            interval = min(interval, remaining)
        self._cancelled.wait(max(0.0, interval))
        return self.cancelled

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run a blocking request, giving up on it when the context is done.

        The request runs in a daemon thread. On cancellation the caller gets
        ScanCancelled at once and the abandoned request finishes (or times
        out) in the background, so only use this for read-only requests.

        Returns:
            Whatever func returns

        Raises:
            ScanCancelled: If the context is done before func returns
            Exception: Whatever func raises
        """
        self.check()

        done = threading.Event()
        outcome: dict = {}

        def target() -> None:
            try:
                outcome["value"] = func(*args, **kwargs)
            except BaseException as e:  # noqa: BLE001
                outcome["error"] = e
            finally:
                done.set()

        remove = self.on_cancel(done.set)
        try:
            threading.Thread(target=target, name="kubebench-request", daemon=True).start()
            done.wait(self.remaining())
        finally:
            remove()

        if "error" in outcome:
            raise outcome["error"]
        if "value" in outcome:
            return outcome["value"]
        # Woken by cancel() or the deadline before the request finished
        self.check()
        raise ScanCancelled(self.reason or "context cancelled")
