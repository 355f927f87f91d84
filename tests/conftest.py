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

"""Shared fixtures: in-memory API server fakes and a step logger."""

from __future__ import annotations

import logging

import pytest

from kube_harness import scheme
from kube_harness.client import RetryClient
from kube_harness.fake import FakeDiscoveryClient, FakeObjectClient
from kube_harness.logs import BufferedLogger


@pytest.fixture(autouse=True, scope="session")
def registered_kinds():
    return scheme.init_scheme()


@pytest.fixture
def fresh_scheme(monkeypatch):
    """A process scheme on which init_scheme() has not run yet."""
    monkeypatch.setattr(scheme, "registry", scheme.KindRegistry())
    monkeypatch.setattr(scheme, "_initialized", False)
    return scheme


@pytest.fixture
def fake_client():
    client = FakeObjectClient()
    yield client
    client.close_watches()


@pytest.fixture
def discovery():
    return FakeDiscoveryClient()


@pytest.fixture
def retry_client(fake_client, discovery):
    return RetryClient(fake_client, discovery)


@pytest.fixture
def step_logger(caplog):
    caplog.set_level(logging.INFO, logger="kube_harness")
    return BufferedLogger(prefix="test | ")
