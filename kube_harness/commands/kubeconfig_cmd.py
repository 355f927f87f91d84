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

"""Kubeconfig command: export the active client configuration."""

from __future__ import annotations

import sys

import typer
from kubernetes import config
from kubernetes.client import Configuration

from kube_harness import console, logger
from kube_harness.config import load_config
from kube_harness.errors import HarnessError
from kube_harness.kubeconfig import write_kubeconfig


def kubeconfig(
    output: str | None = typer.Option(None, "--output", "-o", help="File to write (default: stdout)"),
    kubeconfig_path: str | None = typer.Option(None, "--kubeconfig", help="Source kubeconfig"),
    kube_context: str | None = typer.Option(None, "--context", help="Kubeconfig context"),
) -> None:
    """Write the resolved cluster connection as a self-contained kubeconfig."""
    cfg = load_config(kubeconfig=kubeconfig_path, kube_context=kube_context)

    configuration = Configuration()
    try:
        config.load_kube_config(
            config_file=cfg.kubeconfig, context=cfg.kube_context, client_configuration=configuration
        )
    except config.ConfigException as err:
        logger.error("Found error while loading Kubernetes config file. %s", err)
        raise HarnessError("Invalid Kubernetes config file") from err

    if output is None:
        write_kubeconfig(configuration, sys.stdout)
        return
    with open(output, "w") as f:
        write_kubeconfig(configuration, f)
    console.print(f"[green]\u2705 Kubeconfig written to {output}[/green]")
