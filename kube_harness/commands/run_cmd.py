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

"""Run command: execute the commands declared by a harness document."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from kube_harness import console
from kube_harness.apis import Command, TestAssert, TestStep, TestSuite
from kube_harness.config import display_config, load_config
from kube_harness.logs import BufferedLogger
from kube_harness.objects import load_yaml_file
from kube_harness.runner import run_commands


def commands_from_file(path: str | Path) -> list[Command]:
    """Collect the commands of every TestStep, TestAssert and TestSuite in *path*.

    Raises:
        typer.BadParameter: If the file declares no harness document.
    """
    documents = [
        doc for doc in load_yaml_file(path)
        if isinstance(doc, (TestStep, TestAssert, TestSuite))
    ]
    if not documents:
        raise typer.BadParameter(f"{path} contains no TestStep, TestAssert or TestSuite")
    return [command for doc in documents for command in doc.commands]


def run(
    path: str = typer.Argument(..., help="YAML file with a TestStep, TestAssert or TestSuite"),
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Namespace for the commands (overrides KUBE_HARNESS_NAMESPACE)"),
    timeout: int | None = typer.Option(
        None, "--timeout", help="Default command timeout in seconds; 0 disables"),
    workdir: str | None = typer.Option(
        None, "--workdir", help="Working directory (defaults to the file's directory)"),
    show_config: bool = typer.Option(False, "--show-config", help="Print the resolved configuration"),
) -> None:
    """Run the commands of a harness document in order."""
    cfg = load_config(namespace=namespace, command_timeout=timeout)
    if show_config:
        display_config(cfg)

    commands = commands_from_file(path)
    step_logger = BufferedLogger(prefix=f"{Path(path).name} | ")

    console.print(Panel.fit(f"Running {len(commands)} commands from {path}", style="bold blue"))
    running, errors = run_commands(
        step_logger, cfg.namespace, commands,
        workdir or str(Path(path).parent), cfg.command_timeout,
    )

    for bg in running:
        console.print(f"[yellow]\u2139\ufe0f  Stopping background process {bg.pid}[/yellow]")
        bg.kill()
        bg.wait()
    step_logger.flush()

    if errors:
        for err in errors:
            console.print(f"[red]\u2717 {err}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]\u2705 {len(commands)} commands completed[/green]")
