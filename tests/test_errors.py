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

"""Tests for exception types and API error classifiers."""

from __future__ import annotations

import json

from kubernetes.client.exceptions import ApiException

from kube_harness.errors import (
    CommandFailedError,
    CommandTimeoutError,
    CommandValidationError,
    DeadlineExceeded,
    HarnessError,
    is_already_exists,
    is_conflict,
    is_json_syntax_error,
    is_not_found,
    status_reason,
)
from kube_harness.fake import api_error


def test_reason_is_read_from_status_body():
    err = api_error(409, "AlreadyExists")
    assert status_reason(err) == "AlreadyExists"
    assert is_already_exists(err)
    assert not is_conflict(err)


def test_reason_falls_back_to_status_code():
    assert is_not_found(ApiException(status=404, reason="Not Found"))
    assert status_reason(ApiException(status=500, reason="Internal")) is None


def test_bodyless_409_is_neither_conflict_nor_already_exists():
    err = ApiException(status=409, reason="Conflict")
    assert status_reason(err) is None
    assert not is_conflict(err)
    assert not is_already_exists(err)


def test_non_api_errors_have_no_reason():
    assert status_reason(ValueError("x")) is None
    assert not is_not_found(KeyError("metadata"))


def test_json_syntax_error():
    try:
        json.loads("{not json")
    except json.JSONDecodeError as err:
        assert is_json_syntax_error(err)
    assert not is_json_syntax_error(ValueError("x"))


def test_command_errors():
    timeout = CommandTimeoutError("sleep 10", 3)
    assert str(timeout) == 'command "sleep 10" exceeded 3 sec timeout'
    assert isinstance(timeout, DeadlineExceeded)
    assert isinstance(timeout, TimeoutError)

    failed = CommandFailedError(["false"], 1)
    assert failed.returncode == 1
    assert failed.argv == ["false"]
    assert isinstance(failed, HarnessError)

    assert isinstance(CommandValidationError("bad"), ValueError)
