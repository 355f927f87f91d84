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

"""Tests for command argument resolution and process supervision."""

from __future__ import annotations

import os
import threading
import time

import pytest

from kube_harness.apis import Command
from kube_harness.context import background
from kube_harness.errors import CommandFailedError, CommandTimeoutError, CommandValidationError
from kube_harness.runner import (
    RunningCommand,
    build_args,
    build_env,
    expand_env,
    resolve_timeout,
    run_command,
    run_commands,
)


def _run(command: Command, step_logger, namespace="test-ns", cwd=None, timeout=0, ctx=None):
    return run_command(
        ctx or background(), namespace, command, cwd, step_logger, step_logger, step_logger, timeout
    )


def _output(step_logger, caplog) -> list[str]:
    step_logger.flush()
    return [
        record.getMessage().removeprefix(step_logger.prefix)
        for record in caplog.records
        if record.getMessage().startswith(step_logger.prefix)
    ]


# ============================================================================
# Argument resolution
# ============================================================================

@pytest.mark.parametrize("command", [
    Command(command="echo hi", script="echo hi"),
    Command(),
    Command(script="kubectl get pods", namespaced=True),
    Command(command="   "),
    Command(command='echo "unterminated'),
])
def test_build_args_rejects_invalid_commands(command):
    with pytest.raises(CommandValidationError):
        build_args(command, "ns", {})


def test_script_runs_through_the_shell():
    assert build_args(Command(script="echo $NAMESPACE | wc -c"), "ns", {}) == [
        "sh", "-c", "echo $NAMESPACE | wc -c",
    ]


def test_command_is_split_respecting_quotes():
    args = build_args(Command(command='kubectl apply -f "my file.yaml"'), "ns", {})
    assert args == ["kubectl", "apply", "-f", "my file.yaml"]


def test_namespaced_command_gets_namespace_flag():
    args = build_args(Command(command="kubectl get pods", namespaced=True), "ns", {})
    assert args == ["kubectl", "get", "pods", "--namespace", "ns"]


@pytest.mark.parametrize("command", [
    "kubectl get pods -n other",
    "kubectl get pods --namespace other",
    "kubectl get pods --namespace=other",
    "kubectl -n other get pods -o yaml",
])
def test_explicit_namespace_flag_is_kept(command):
    args = build_args(Command(command=command, namespaced=True), "ns", {})
    assert "ns" not in args
    assert "other" in args or "--namespace=other" in args


def test_env_expansion_prefers_injected_values(monkeypatch):
    monkeypatch.setenv("NAMESPACE", "from-process")
    monkeypatch.setenv("IMAGE", "nginx")
    monkeypatch.delenv("UNSET_VARIABLE", raising=False)

    args = build_args(
        Command(command="run $NAMESPACE ${IMAGE} $UNSET_VARIABLE"), "ns", {"NAMESPACE": "injected"}
    )

    assert args == ["run", "injected", "nginx"]
    assert expand_env("$A-${A}", {"A": "x"}) == "x-x"


def test_build_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PATH", "/usr/bin")
    cwd = os.getcwd()

    assert build_env("ns") == {
        "NAMESPACE": "ns",
        "KUBECONFIG": f"{cwd}/kubeconfig",
        "PATH": f"{cwd}/bin/:/usr/bin",
    }


@pytest.mark.parametrize("command_timeout,default,expected", [
    (0, 0, 0),
    (0, 30, 30),
    (5, 30, 5),
    (5, 0, 5),
    (-1, 30, 0),
    (-1, 0, 0),
])
def test_resolve_timeout(command_timeout, default, expected):
    assert resolve_timeout(command_timeout, default) == expected


# ============================================================================
# Execution
# ============================================================================

def test_foreground_output_goes_to_the_logger(step_logger, caplog):
    assert _run(Command(command="echo hello world"), step_logger) is None
    output = _output(step_logger, caplog)
    assert "running command: ['echo', 'hello', 'world']" in output
    assert "hello world" in output


def test_stderr_goes_to_the_logger(step_logger, caplog):
    _run(Command(script="echo oops >&2"), step_logger)
    assert "oops" in _output(step_logger, caplog)


def test_skip_log_output_discards_process_output(step_logger, caplog):
    _run(Command(command="echo secret", skip_log_output=True), step_logger)
    assert "secret" not in _output(step_logger, caplog)


def test_nonzero_exit_fails(step_logger):
    with pytest.raises(CommandFailedError) as excinfo:
        _run(Command(script="exit 3"), step_logger)
    assert excinfo.value.returncode == 3


def test_ignore_failure(step_logger):
    assert _run(Command(script="exit 3", ignore_failure=True), step_logger) is None


def test_missing_executable_is_not_ignored(step_logger):
    with pytest.raises(OSError):
        _run(Command(command="definitely-not-a-real-binary-xyz", ignore_failure=True), step_logger)


def test_foreground_timeout(step_logger):
    start = time.monotonic()
    with pytest.raises(CommandTimeoutError, match='command "sleep 5" exceeded 1 sec timeout'):
        _run(Command(command="sleep 5"), step_logger, timeout=1)
    assert time.monotonic() - start < 4


def test_command_timeout_overrides_default(step_logger):
    with pytest.raises(CommandTimeoutError, match="exceeded 1 sec"):
        _run(Command(command="sleep 5", timeout=1), step_logger, timeout=60)


def test_ignore_failure_wins_over_timeout(step_logger):
    assert _run(Command(command="sleep 5", ignore_failure=True), step_logger, timeout=1) is None


def test_cancelled_context_kills_foreground_command(step_logger):
    ctx = background()
    timer = threading.Timer(0.2, ctx.cancel)
    timer.start()
    start = time.monotonic()
    with pytest.raises(CommandFailedError):
        _run(Command(command="sleep 5"), step_logger, ctx=ctx)
    assert time.monotonic() - start < 4


def test_background_command_returns_immediately(step_logger):
    start = time.monotonic()
    running = _run(Command(command="sleep 5", background=True), step_logger, timeout=1)
    try:
        assert isinstance(running, RunningCommand)
        assert time.monotonic() - start < 2
        assert running.poll() is None
        assert running.args == ["sleep", "5"]
    finally:
        running.kill()
        running.wait()


def test_background_command_is_killed_with_its_context(step_logger):
    ctx = background()
    running = _run(Command(command="sleep 5", background=True), step_logger, ctx=ctx)
    ctx.cancel()
    assert running.wait(timeout=4) != 0


def test_environment_is_injected(monkeypatch, tmp_path, step_logger, caplog):
    monkeypatch.chdir(tmp_path)
    cwd = os.getcwd()

    _run(Command(script='echo "$NAMESPACE $KUBECONFIG"; echo "$PATH"'), step_logger)

    output = _output(step_logger, caplog)
    assert f"test-ns {cwd}/kubeconfig" in output
    assert any(line.startswith(f"{cwd}/bin/:") for line in output)


def test_local_bin_directory_is_searched(monkeypatch, tmp_path, step_logger, caplog):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    tool = bin_dir / "say-hi"
    tool.write_text("#!/bin/sh\necho hi from bin\n")
    tool.chmod(0o755)
    monkeypatch.chdir(tmp_path)

    _run(Command(command="say-hi"), step_logger)

    assert "hi from bin" in _output(step_logger, caplog)


def test_working_directory(tmp_path, step_logger, caplog):
    _run(Command(command="pwd"), step_logger, cwd=str(tmp_path))
    assert os.path.realpath(str(tmp_path)) in [os.path.realpath(line) for line in _output(step_logger, caplog)
                                               if line.startswith("/")]


# ============================================================================
# Sequences
# ============================================================================

def test_run_commands_collects_errors_and_keeps_going(step_logger, caplog):
    running, errors = run_commands(step_logger, "ns", [
        Command(command="echo one"),
        Command(script="exit 2"),
        Command(command="echo three"),
        Command(),
    ], None, 0)

    assert running == []
    assert len(errors) == 2
    assert isinstance(errors[0], CommandFailedError)
    assert isinstance(errors[1], CommandValidationError)

    output = _output(step_logger, caplog)
    assert output.index("one") < output.index("three")


def test_run_commands_returns_background_processes(step_logger, caplog):
    running, errors = run_commands(step_logger, "ns", [
        Command(command="sleep 5", background=True),
        Command(command="echo foreground"),
    ], None, 0)

    try:
        assert errors == []
        assert len(running) == 1
        assert running[0].poll() is None
        assert "foreground" in _output(step_logger, caplog)
    finally:
        for bg in running:
            bg.kill()
            bg.wait()


@pytest.mark.parametrize("commands", [None, []])
def test_run_commands_with_nothing_to_run(step_logger, commands):
    assert run_commands(step_logger, "ns", commands, None, 0) == ([], [])
