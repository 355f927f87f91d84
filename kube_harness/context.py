# /*
# Copyright 2026 The Kube Harness Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Cancellation scopes with optional deadlines, shared across threads."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from kube_harness.errors import ContextCancelled, DeadlineExceeded, HarnessError


class Context:
    """A cancellation scope that may carry a deadline.

    A context becomes done when it is cancelled, when its own timeout elapses,
    or when its parent becomes done. Done callbacks run exactly once, on the
    thread that finished the context. Used as a context manager, the scope is
    cancelled on exit.

    Attributes:
        deadline: ``time.monotonic()`` value after which the context expires,
            or None when neither it nor any ancestor has a deadline.
    """

    def __init__(self, parent: Context | None = None, timeout: float | None = None) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._err: HarnessError | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._timer: threading.Timer | None = None
        self._parent = parent

        self.deadline = parent.deadline if parent is not None else None
        if timeout is not None:
            own_deadline = time.monotonic() + timeout
            if self.deadline is None or own_deadline < self.deadline:
                self.deadline = own_deadline

        if parent is not None:
            parent.add_done_callback(self._on_parent_done)
        if timeout is not None and not self._done.is_set():
            self._timer = threading.Timer(max(timeout, 0.0), self._finish, args=(DeadlineExceeded(),))
            self._timer.daemon = True
            self._timer.start()

    def __enter__(self) -> Context:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()

    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context is done or *timeout* seconds pass."""
        return self._done.wait(timeout)

    def error(self) -> HarnessError | None:
        """Return why the context is done, or None while it is still live."""
        with self._lock:
            return self._err

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def cancel(self) -> None:
        self._finish(ContextCancelled())

    def add_done_callback(self, fn: Callable[[], None]) -> None:
        """Register *fn* to run once the context is done; runs now if it already is."""
        with self._lock:
            if not self._done.is_set():
                self._callbacks.append(fn)
                return
        fn()

    def remove_done_callback(self, fn: Callable[[], None]) -> None:
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

    def _on_parent_done(self) -> None:
        self._finish(self._parent.error())

    def _finish(self, err: HarnessError) -> None:
        with self._lock:
            if self._done.is_set():
                return
            self._err = err
            self._done.set()
            callbacks, self._callbacks = self._callbacks, []
        if self._timer is not None:
            self._timer.cancel()
        if self._parent is not None:
            self._parent.remove_done_callback(self._on_parent_done)
        for fn in callbacks:
            fn()


def background() -> Context:
    """Return a context that is never done unless cancelled explicitly."""
    return Context()


def with_timeout(parent: Context, timeout: float) -> Context:
    """Derive a child context that expires after *timeout* seconds."""
    return Context(parent, timeout=timeout)


def with_cancel(parent: Context) -> Context:
    """Derive a child context that can be cancelled independently of *parent*."""
    return Context(parent)
