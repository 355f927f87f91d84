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

"""Fixed-interval condition polling."""

from __future__ import annotations

from collections.abc import Callable

from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from kube_harness.errors import DeadlineExceeded

Probe = Callable[[], bool]


def poll_immediate(interval: float, timeout: float, probe: Probe) -> None:
    """Run *probe* now and then every *interval* seconds until it returns True.

    The probe is not retried on error: an exception it raises ends polling and
    propagates unchanged.

    Args:
        interval: Seconds between probe invocations.
        timeout: Seconds after which polling gives up.
        probe: Condition check returning True once satisfied.

    Raises:
        DeadlineExceeded: If *timeout* elapses before the probe succeeds.
    """
    retrying = Retrying(
        retry=retry_if_result(lambda done: not done),
        wait=wait_fixed(interval),
        stop=stop_after_delay(timeout),
        reraise=True,
    )
    try:
        retrying(probe)
    except RetryError as err:
        raise DeadlineExceeded("timed out waiting for the condition") from err
