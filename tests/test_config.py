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

"""Tests for harness settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from kube_harness.config import HarnessConfig, display_config, load_config


def test_defaults(monkeypatch):
    for name in ("NAMESPACE", "KUBECONFIG", "COMMAND_TIMEOUT", "POLL_INTERVAL", "POLL_TIMEOUT"):
        monkeypatch.delenv(f"KUBE_HARNESS_{name}", raising=False)
    cfg = HarnessConfig()
    assert cfg.namespace == "default"
    assert cfg.kubeconfig is None
    assert cfg.command_timeout == 0
    assert cfg.poll_interval == 0.1
    assert cfg.poll_timeout == 10.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("KUBE_HARNESS_NAMESPACE", "ci")
    monkeypatch.setenv("KUBE_HARNESS_COMMAND_TIMEOUT", "45")
    cfg = HarnessConfig()
    assert cfg.namespace == "ci"
    assert cfg.command_timeout == 45


def test_invalid_values_are_rejected(monkeypatch):
    monkeypatch.setenv("KUBE_HARNESS_COMMAND_TIMEOUT", "-1")
    with pytest.raises(ValidationError):
        HarnessConfig()


def test_load_config_applies_given_overrides(monkeypatch):
    monkeypatch.setenv("KUBE_HARNESS_NAMESPACE", "ci")
    cfg = load_config(namespace=None, command_timeout=30)
    assert cfg.namespace == "ci"
    assert cfg.command_timeout == 30


def test_display_config(capsys):
    display_config(HarnessConfig(namespace="shown"))
    assert "shown" in capsys.readouterr().err
