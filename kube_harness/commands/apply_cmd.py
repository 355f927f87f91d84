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

"""Apply command: install a directory of manifests."""

from __future__ import annotations

import typer
from rich.panel import Panel

from kube_harness import console
from kube_harness.client import new_retry_client
from kube_harness.config import load_config
from kube_harness.manifests import install_manifests


def parse_kind(value: str) -> dict:
    """Turn ``<apiVersion>/<Kind>`` (e.g. ``apps/v1/Deployment``) into a kind filter."""
    api_version, _, kind = value.rpartition("/")
    if not api_version or not kind:
        raise typer.BadParameter(f"expected <apiVersion>/<Kind>, got {value!r}")
    return {"apiVersion": api_version, "kind": kind}


def apply(
    manifests_dir: str | None = typer.Argument(
        None, help="Manifest directory (overrides KUBE_HARNESS_MANIFESTS_DIR)"),
    kinds: list[str] = typer.Option(
        [], "--kind", help="Only install this <apiVersion>/<Kind>; repeatable"),
    kubeconfig: str | None = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig"),
    kube_context: str | None = typer.Option(None, "--context", help="Kubeconfig context"),
) -> None:
    """Create or update every manifest under a directory."""
    cfg = load_config(manifests_dir=manifests_dir, kubeconfig=kubeconfig, kube_context=kube_context)
    if not cfg.manifests_dir:
        raise typer.BadParameter("no manifest directory given")
    kind_filters = [parse_kind(kind) for kind in kinds]

    console.print(Panel.fit(f"Installing manifests from {cfg.manifests_dir}", style="bold blue"))
    client = new_retry_client(cfg.kubeconfig, cfg.kube_context)
    installed = install_manifests(client, client.discovery, cfg.manifests_dir, *kind_filters)
    console.print(f"[green]\u2705 Installed {len(installed)} objects[/green]")
