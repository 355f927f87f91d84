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

"""Wait subcommands (crds, deleted)."""

from __future__ import annotations

import typer

from kube_harness import console
from kube_harness.client import new_retry_client, wait_for_crds, wait_for_delete
from kube_harness.config import HarnessConfig, load_config
from kube_harness.constants import CRD_KIND
from kube_harness.discovery import namespaced
from kube_harness.objects import load_yaml_file, to_unstructured

app = typer.Typer(help="Wait for cluster state to converge.")


def _load(path: str) -> list[dict]:
    return [to_unstructured(obj) for obj in load_yaml_file(path)]


def _config(interval: float | None, timeout: float | None, kubeconfig: str | None,
            kube_context: str | None, namespace: str | None = None) -> HarnessConfig:
    return load_config(
        poll_interval=interval, poll_timeout=timeout,
        kubeconfig=kubeconfig, kube_context=kube_context, namespace=namespace,
    )


@app.command()
def crds(
    path: str = typer.Argument(..., help="YAML file with CustomResourceDefinitions"),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between checks"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds before giving up"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig"),
    kube_context: str | None = typer.Option(None, "--context", help="Kubeconfig context"),
) -> None:
    """Wait until the API server serves every CRD in a file."""
    cfg = _config(interval, timeout, kubeconfig, kube_context)
    definitions = [obj for obj in _load(path) if obj.get("kind") == CRD_KIND]

    console.print(f"[yellow]\u2139\ufe0f  Waiting for {len(definitions)} CRDs...[/yellow]")
    client = new_retry_client(cfg.kubeconfig, cfg.kube_context)
    wait_for_crds(client.discovery, definitions, cfg.poll_interval, cfg.poll_timeout)
    console.print("[green]\u2705 All CRDs are served[/green]")


@app.command()
def deleted(
    path: str = typer.Argument(..., help="YAML file with the objects to wait for"),
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Namespace for objects without one"),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between checks"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds before giving up"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig"),
    kube_context: str | None = typer.Option(None, "--context", help="Kubeconfig context"),
) -> None:
    """Wait until every object in a file is gone."""
    cfg = _config(interval, timeout, kubeconfig, kube_context, namespace)
    objects = _load(path)

    console.print(f"[yellow]\u2139\ufe0f  Waiting for {len(objects)} objects to be deleted...[/yellow]")
    client = new_retry_client(cfg.kubeconfig, cfg.kube_context)
    for obj in objects:
        namespaced(client.discovery, obj, cfg.namespace)
    wait_for_delete(client, objects, cfg.poll_interval, cfg.poll_timeout)
    console.print("[green]\u2705 All objects deleted[/green]")
