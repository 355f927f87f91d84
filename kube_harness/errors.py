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

"""Exception types and API error classifiers."""

from __future__ import annotations

import json

from kubernetes.client.exceptions import ApiException

from kube_harness.constants import REASON_ALREADY_EXISTS, REASON_CONFLICT, REASON_NOT_FOUND


# ============================================================================
# Exceptions
# ============================================================================

class HarnessError(Exception):
    """Base class for errors raised by the harness runtime."""


class DeadlineExceeded(HarnessError, TimeoutError):
    """A context deadline or polling timeout elapsed."""

    def __init__(self, message: str = "context deadline exceeded") -> None:
        super().__init__(message)


class ContextCancelled(HarnessError):
    """A context was cancelled before the work completed."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class CommandValidationError(HarnessError, ValueError):
    """A command specification is contradictory or incomplete."""


class CommandFailedError(HarnessError):
    """A spawned process exited with a nonzero status.

    Attributes:
        argv: Argument vector of the process.
        returncode: Exit status reported by the process.
    """

    def __init__(self, argv: list[str], returncode: int) -> None:
        self.argv = argv
        self.returncode = returncode
        super().__init__(f"command {argv!r} exited with status {returncode}")


class CommandTimeoutError(DeadlineExceeded):
    """A foreground command ran past its effective timeout."""

    def __init__(self, command: str, timeout: int) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f'command "{command}" exceeded {timeout} sec timeout')


# ============================================================================
# Classifiers
# ============================================================================

def status_reason(err: BaseException) -> str | None:
    """Extract the API server ``Status.reason`` carried by an API error.

    Args:
        err: Any exception; only ``ApiException`` (or an object exposing
            ``status`` and ``body`` like the dynamic client's errors) carries a reason.

    Returns:
        The reason string. Without a body only a 404 maps to a reason (NotFound).
    """
    status = getattr(err, "status", None)
    if not isinstance(err, ApiException) and status is None:
        return None

    body = getattr(err, "body", None)
    if body:
        try:
            payload = json.loads(body)
        except (TypeError, ValueError):
            payload = None
        if isinstance(payload, dict) and payload.get("reason"):
            return payload["reason"]

    # 409 is shared by Conflict and AlreadyExists, so only a body can tell them apart.
    if status == 404:
        return REASON_NOT_FOUND
    return None


def is_not_found(err: BaseException) -> bool:
    return status_reason(err) == REASON_NOT_FOUND


def is_already_exists(err: BaseException) -> bool:
    return status_reason(err) == REASON_ALREADY_EXISTS


def is_conflict(err: BaseException) -> bool:
    return status_reason(err) == REASON_CONFLICT


def is_json_syntax_error(err: BaseException) -> bool:
    """Return True for a malformed JSON response body."""
    return isinstance(err, json.JSONDecodeError)
