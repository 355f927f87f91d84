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

"""Tests for the retry executor."""

from __future__ import annotations

import time

import pytest
from kubernetes.client.exceptions import ApiException

from kube_harness.constants import REASON_CONFLICT
from kube_harness.context import background, with_timeout
from kube_harness.errors import ContextCancelled, DeadlineExceeded, is_conflict, is_not_found
from kube_harness.fake import api_error
from kube_harness.retry import retry, validate_errors


class FlakyOperation:
    """Fails with the queued errors, then succeeds."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self, ctx):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)


def test_success_on_first_attempt():
    op = FlakyOperation()
    retry(background(), op, is_conflict)
    assert op.calls == 1


def test_unclassified_error_is_raised_immediately():
    op = FlakyOperation(ValueError("boom"), api_error(409, REASON_CONFLICT))
    with pytest.raises(ValueError, match="boom"):
        retry(background(), op, is_conflict)
    assert op.calls == 1


def test_no_classifiers_means_no_retries():
    op = FlakyOperation(api_error(409, REASON_CONFLICT))
    with pytest.raises(ApiException):
        retry(background(), op)
    assert op.calls == 1


def test_tolerated_errors_are_retried_until_success():
    op = FlakyOperation(api_error(409, REASON_CONFLICT), api_error(409, REASON_CONFLICT))
    retry(with_timeout(background(), 5), op, is_conflict)
    assert op.calls == 3


def test_classifiers_are_ored():
    op = FlakyOperation(api_error(404, "NotFound"), api_error(409, REASON_CONFLICT))
    retry(background(), op, is_not_found, is_conflict)
    assert op.calls == 3


def test_cancelled_context_returns_context_error():
    ctx = background()
    ctx.cancel()
    with pytest.raises(ContextCancelled):
        retry(ctx, lambda c: time.sleep(1), is_conflict)


def test_expired_context_returns_deadline_error():
    ctx = with_timeout(background(), 0)
    assert ctx.wait(1)
    with pytest.raises(DeadlineExceeded):
        retry(ctx, lambda c: time.sleep(1), is_conflict)


def test_last_tolerated_error_is_returned_at_deadline():
    def _always_conflicts(ctx):
        time.sleep(0.01)
        raise api_error(409, REASON_CONFLICT, "still conflicting")

    with pytest.raises(ApiException) as excinfo:
        retry(with_timeout(background(), 0.2), _always_conflicts, is_conflict)
    assert is_conflict(excinfo.value)


def test_hung_attempt_is_abandoned_at_deadline():
    start = time.monotonic()
    with pytest.raises(DeadlineExceeded):
        retry(with_timeout(background(), 0.1), lambda c: time.sleep(5), is_conflict)
    assert time.monotonic() - start < 2


def test_attempt_receives_the_context():
    seen = []
    ctx = background()
    retry(ctx, seen.append)
    assert seen == [ctx]


def test_validate_errors():
    conflict = api_error(409, REASON_CONFLICT)
    assert validate_errors(conflict, is_not_found, is_conflict) is None
    assert validate_errors(conflict, is_not_found) is conflict
    assert validate_errors(conflict) is conflict
