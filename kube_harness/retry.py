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

"""Bounded-time retry of fallible operations with pluggable error classifiers.

Attempts are immediate (no backoff) and bounded only by the context: this is
test-harness latency policy, not a production client's. Every attempt runs on
its own daemon thread so that a hung operation can be raced against the
context. When the context wins, the attempt is abandoned rather than stopped;
if the wrapped operation is not idempotent its side effects may still land
after the caller has moved on.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable

from tenacity import Retrying, retry_if_exception, stop_never, wait_none

from kube_harness.context import Context

ErrorClassifier = Callable[[BaseException], bool]
Operation = Callable[[Context], None]

_SUCCESS = object()
_CONTEXT_DONE = object()


class _Abandoned(Exception):
    """The context finished while an attempt was still outstanding."""


def validate_errors(err: BaseException, *classifiers: ErrorClassifier) -> BaseException | None:
    """Return None if any classifier tolerates *err*, otherwise *err* itself."""
    for classifier in classifiers:
        if classifier(err):
            return None
    return err


def _await_attempt(ctx: Context, fn: Operation, channel: queue.Queue) -> None:
    """Run one attempt of *fn* and wait for it or for *ctx*, whichever comes first.

    Raises:
        _Abandoned: If the context finished first.
        Exception: Whatever the attempt raised.
    """

    def _attempt() -> None:
        try:
            fn(ctx)
        except Exception as err:
            channel.put(err)
        else:
            channel.put(_SUCCESS)

    threading.Thread(target=_attempt, name="retry-attempt", daemon=True).start()

    outcome = channel.get()
    if outcome is _SUCCESS:
        return
    if outcome is _CONTEXT_DONE:
        raise _Abandoned()
    raise outcome


def retry(ctx: Context, fn: Operation, *classifiers: ErrorClassifier) -> None:
    """Repeat *fn* until it succeeds, fails intolerably, or *ctx* is done.

    Args:
        ctx: Context bounding the whole retry loop; passed to every attempt.
        fn: Operation to run; raising signals failure.
        *classifiers: Predicates marking an error as tolerable (OR-ed).

    Raises:
        Exception: The first error no classifier tolerates, unchanged.
        HarnessError: The context's error if it finished before any tolerated
            error was seen; otherwise the most recent tolerated error.
    """
    tolerated: list[BaseException] = []
    attempts: queue.Queue = queue.Queue()

    # Each attempt's outcome is consumed before the next one starts, so the
    # context sentinel is the only entry that can outlive an attempt.
    def _on_done() -> None:
        attempts.put(_CONTEXT_DONE)

    retrying = Retrying(
        retry=retry_if_exception(
            lambda err: not isinstance(err, _Abandoned) and validate_errors(err, *classifiers) is None
        ),
        wait=wait_none(),
        stop=stop_never,
        before_sleep=lambda state: tolerated.append(state.outcome.exception()),
        reraise=True,
    )

    ctx.add_done_callback(_on_done)
    try:
        for attempt in retrying:
            with attempt:
                _await_attempt(ctx, fn, attempts)
    except _Abandoned:
        if tolerated:
            raise tolerated[-1] from None
        raise ctx.error() from None
    finally:
        ctx.remove_done_callback(_on_done)
