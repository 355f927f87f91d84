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

"""Harness settings, auto-loaded from KUBE_HARNESS_* env vars."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from kube_harness import console
from kube_harness.constants import (
    DEFAULT_COMMAND_TIMEOUT,
    ENV_PREFIX,
    NS_DEFAULT,
    POLL_INTERVAL_SECONDS,
    POLL_TIMEOUT_SECONDS,
)


class HarnessConfig(BaseSettings):
    """Runtime configuration for test steps.

    Attributes:
        namespace: Namespace injected into commands and defaulted onto objects.
        kubeconfig: Path to the kubeconfig, or None for the client default.
        kube_context: Kubeconfig context to use, or None for the current one.
        command_timeout: Default command timeout in seconds; 0 means none.
        poll_interval: Seconds between convergence probes.
        poll_timeout: Seconds before a convergence wait gives up.
        manifests_dir: Directory of manifests installed by ``apply``, or None.
    """

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    namespace: str = NS_DEFAULT
    kubeconfig: str | None = None
    kube_context: str | None = None
    command_timeout: int = Field(default=DEFAULT_COMMAND_TIMEOUT, ge=0)
    poll_interval: float = Field(default=POLL_INTERVAL_SECONDS, gt=0)
    poll_timeout: float = Field(default=POLL_TIMEOUT_SECONDS, gt=0)
    manifests_dir: str | None = None


def display_config(cfg: HarnessConfig) -> None:
    """Print the resolved configuration.

    Args:
        cfg: Harness configuration to display.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print(f"  namespace       : {cfg.namespace}")
    console.print(f"  kubeconfig      : {cfg.kubeconfig or '(client default)'}")
    console.print(f"  kube_context    : {cfg.kube_context or '(current)'}")
    console.print(f"  command_timeout : {cfg.command_timeout or '(none)'}")
    console.print(f"  poll_interval   : {cfg.poll_interval}")
    console.print(f"  poll_timeout    : {cfg.poll_timeout}")


def load_config(**overrides) -> HarnessConfig:
    """Load settings from the environment, then apply CLI overrides that were given.

    Args:
        **overrides: Field values; None means the option was not passed.
    """
    cfg = HarnessConfig()
    given = {key: value for key, value in overrides.items() if value is not None}
    if given:
        cfg = cfg.model_copy(update=given)
    return cfg
