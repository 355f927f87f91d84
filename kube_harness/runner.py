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

"""Build, start and supervise test-step commands."""

from __future__ import annotations

import argparse
import io
import os
import re
import shlex
import signal
import subprocess
import threading
from dataclasses import dataclass, field
from typing import IO

from kube_harness.apis import Command
from kube_harness.constants import (
    ENV_KUBECONFIG,
    ENV_NAMESPACE,
    ENV_PATH,
    KUBECONFIG_FILENAME,
    LOCAL_BIN_DIR,
    SHELL_WRAPPER,
)
from kube_harness.context import Context, background, with_timeout
from kube_harness.errors import (
    CommandFailedError,
    CommandTimeoutError,
    CommandValidationError,
    DeadlineExceeded,
)
from kube_harness.logs import StepLogger

_ENV_REFERENCE = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


# ============================================================================
# Argument resolution
# ============================================================================

class _FlagParser(argparse.ArgumentParser):
    """Parser that reports errors instead of exiting the interpreter."""

    def error(self, message: str):
        raise CommandValidationError(message)


def _namespace_flag(args: list[str]) -> str:
    """Return the value of ``-n``/``--namespace`` in *args*, ignoring other flags."""
    parser = _FlagParser(add_help=False, allow_abbrev=False)
    parser.add_argument("-n", "--namespace", default="")
    known, _ = parser.parse_known_args(args)
    return known.namespace


def expand_env(text: str, env: dict[str, str]) -> str:
    """Expand ``$VAR``/``${VAR}`` from *env*, then the process environment.

    Unknown variables expand to an empty string.
    """

    def _lookup(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        if name in env:
            return env[name]
        return os.environ.get(name, "")

    return _ENV_REFERENCE.sub(_lookup, text)


def build_args(command: Command, namespace: str, env: dict[str, str]) -> list[str]:
    """Resolve the argument vector for *command*.

    Args:
        command: Command specification; exactly one of command/script must be set.
        namespace: Namespace appended to namespaced inline commands.
        env: Variables available to ``$VAR`` expansion of inline commands.

    Returns:
        Argument vector ready for ``subprocess.Popen``.

    Raises:
        CommandValidationError: If the specification is contradictory,
            incomplete or cannot be split.
    """
    if command.command and command.script:
        raise CommandValidationError("command and script can not be set in the same configuration")
    if not command.command and not command.script:
        raise CommandValidationError("command or script must be set")
    if command.script and command.namespaced:
        raise CommandValidationError(
            "script can not used 'namespaced', use the $NAMESPACE environment variable instead"
        )

    if command.script:
        return [*SHELL_WRAPPER, command.script]

    try:
        args = shlex.split(expand_env(command.command, env))
    except ValueError as err:
        raise CommandValidationError(f"cannot split command {command.command!r}: {err}") from err
    if not args:
        raise CommandValidationError("command must not be empty")

    if command.namespaced and not _namespace_flag(args):
        args += ["--namespace", namespace]
    return args


def build_env(namespace: str) -> dict[str, str]:
    """Variables injected into every command, rooted at the harness working directory."""
    cwd = os.getcwd()
    return {
        ENV_NAMESPACE: namespace,
        ENV_KUBECONFIG: f"{cwd}/{KUBECONFIG_FILENAME}",
        ENV_PATH: f"{cwd}/{LOCAL_BIN_DIR}/:{os.environ.get(ENV_PATH, '')}",
    }


def resolve_timeout(command_timeout: int, default: int) -> int:
    """Apply a command-level timeout override to the caller default.

    Negative always means no timeout (returned as 0), positive overrides the
    default, zero keeps it.
    """
    if command_timeout < 0:
        return 0
    if command_timeout > 0:
        return command_timeout
    return default


# ============================================================================
# Process handles
# ============================================================================

def _pump(stream: IO[str], sink: IO[str]) -> None:
    with stream:
        for line in stream:
            sink.write(line)


def _has_fileno(sink: IO[str]) -> bool:
    try:
        sink.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return False
    return True


@dataclass
class RunningCommand:
    """A started process plus the threads copying its output.

    Background commands are handed to the caller as-is; nothing reaps them
    implicitly.

    Attributes:
        args: Argument vector the process was started with.
        process: Underlying Popen handle.
    """

    args: list[str]
    process: subprocess.Popen
    pumps: list[threading.Thread] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid

    def poll(self) -> int | None:
        return self.process.poll()

    def wait(self, timeout: float | None = None) -> int:
        """Wait for exit and for the output to be fully copied; return the exit status."""
        returncode = self.process.wait(timeout)
        for pump in self.pumps:
            pump.join()
        return returncode

    def kill(self) -> None:
        """Kill the process and everything it started in its process group."""
        if self.process.poll() is None:
            try:
                os.killpg(self.process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass


def _start(args: list[str], cwd: str | None, env: dict[str, str],
           stdout: IO[str] | None, stderr: IO[str] | None) -> RunningCommand:
    """Spawn *args* with output wired to the given sinks (None discards)."""
    streams = {}
    for name, sink in (("stdout", stdout), ("stderr", stderr)):
        if sink is None:
            streams[name] = subprocess.DEVNULL
        elif _has_fileno(sink):
            streams[name] = sink
        else:
            streams[name] = subprocess.PIPE

    process = subprocess.Popen(
        args, cwd=cwd, env=env,
        stdin=subprocess.DEVNULL,
        start_new_session=True,
        text=True, encoding="utf-8", errors="replace",
        **streams,
    )

    running = RunningCommand(args, process)
    for stream, sink in ((process.stdout, stdout), (process.stderr, stderr)):
        if stream is not None:
            pump = threading.Thread(target=_pump, args=(stream, sink), daemon=True)
            pump.start()
            running.pumps.append(pump)
    return running


# ============================================================================
# Execution
# ============================================================================

def run_command(
    ctx: Context,
    namespace: str,
    command: Command,
    cwd: str | None,
    stdout: IO[str] | None,
    stderr: IO[str] | None,
    logger: StepLogger,
    timeout: int,
) -> RunningCommand | None:
    """Run one test-step command.

    Foreground commands are waited on, bounded by the effective timeout; when
    the governing context finishes first the process is killed. Background
    commands are returned running and are never time-boxed here.

    Args:
        ctx: Parent context; its cancellation kills the process.
        namespace: Namespace exposed as ``$NAMESPACE`` and appended to namespaced commands.
        command: Command specification.
        cwd: Working directory of the process, or None for the current one.
        stdout: Sink for standard output.
        stderr: Sink for standard error.
        logger: Step logger receiving the resolved argument vector.
        timeout: Caller default timeout in seconds; 0 means none.

    Returns:
        The running process for background commands, otherwise None.

    Raises:
        CommandValidationError: If the specification is invalid; nothing is spawned.
        OSError: If the process cannot be started.
        CommandTimeoutError: If a foreground command outlives its timeout.
        CommandFailedError: If a foreground command exits nonzero and failures
            are not ignored.
    """
    env_overrides = build_env(namespace)
    timeout = resolve_timeout(command.timeout, timeout)
    args = build_args(command, namespace, env_overrides)

    logger.logf("running command: %s", args)

    if command.skip_log_output:
        stdout = stderr = None
    running = _start(args, cwd, {**os.environ, **env_overrides}, stdout, stderr)

    if command.background:
        ctx.add_done_callback(running.kill)
        return running

    cmd_ctx = with_timeout(ctx, timeout) if timeout > 0 else ctx
    cmd_ctx.add_done_callback(running.kill)
    try:
        returncode = running.wait()
        timed_out = isinstance(cmd_ctx.error(), DeadlineExceeded)
    finally:
        cmd_ctx.remove_done_callback(running.kill)
        if cmd_ctx is not ctx:
            cmd_ctx.cancel()

    if returncode != 0 and command.ignore_failure:
        return None
    if timed_out:
        raise CommandTimeoutError(command.command or command.script, timeout)
    if returncode != 0:
        raise CommandFailedError(args, returncode)
    return None


def run_commands(
    logger: StepLogger,
    namespace: str,
    commands: list[Command] | None,
    workdir: str | None,
    timeout: int,
) -> tuple[list[RunningCommand], list[Exception]]:
    """Run *commands* in declared order, collecting errors instead of stopping.

    The logger is flushed after every foreground command so that each
    command's output is emitted as one block.

    Returns:
        Tuple of (background processes for the caller to reap, errors).
    """
    running: list[RunningCommand] = []
    errors: list[Exception] = []

    for command in commands or []:
        logger.logf("running command: %r", command.command or command.script)

        try:
            bg = run_command(background(), namespace, command, workdir, logger, logger, logger, timeout)
        except Exception as err:
            errors.append(err)
            bg = None

        if bg is not None:
            running.append(bg)
        else:
            logger.flush()

    if running:
        logger.log("background processes", [bg.args for bg in running])
    return running, errors
