#!/usr/bin/env python3
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

"""
cli.py - Command line front end for the Kubernetes test-harness runtime.

Subcommands:
    apply       Create or update every manifest under a directory
    run         Run the commands of a TestStep, TestAssert or TestSuite
    wait        Wait for convergence (crds, deleted)
    kubeconfig  Export the active cluster connection as a kubeconfig

Examples:
    # Install manifests, defaulting namespaced objects to "default"
    kube-harness apply ./manifests

    # Run a step's commands with a 30 second default timeout
    kube-harness run tests/e2e/basic/00-install.yaml --timeout 30

    # Wait for CRDs declared in a file to be served
    kube-harness wait crds ./crds/crds.yaml

For detailed usage information, run: kube-harness --help
"""

from __future__ import annotations

import logging
import sys

import typer

from kube_harness import console
from kube_harness.commands import apply_cmd, kubeconfig_cmd, run_cmd, wait_cmd
from kube_harness.scheme import init_scheme

app = typer.Typer(
    help="Runtime for declarative Kubernetes test steps.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging and the document scheme for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    init_scheme()


app.command("apply")(apply_cmd.apply)
app.command("run")(run_cmd.run)
app.command("kubeconfig")(kubeconfig_cmd.kubeconfig)
app.add_typer(wait_cmd.app, name="wait")


def main() -> None:
    init_scheme()
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
