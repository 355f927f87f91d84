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

"""Buffered per-step logger that doubles as a process output sink."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from kube_harness import logger as package_logger


class StepLogger(Protocol):
    def log(self, *args: object) -> None: ...

    def logf(self, fmt: str, *args: object) -> None: ...

    def write(self, text: str) -> int: ...

    def flush(self) -> None: ...


class BufferedLogger:
    """Collects step output and emits it as one block on ``flush()``.

    Output from concurrent writers (a process's stdout and stderr pumps) is
    buffered line by line so that each step's output stays contiguous.

    Attributes:
        prefix: Text prepended to every emitted line, e.g. the test name.
    """

    def __init__(self, prefix: str = "", target: logging.Logger | None = None) -> None:
        self.prefix = prefix
        self._target = target or package_logger
        self._lock = threading.Lock()
        self._lines: list[str] = []
        self._partial = ""

    def write(self, text: str) -> int:
        with self._lock:
            data = self._partial + text
            *complete, self._partial = data.split("\n")
            self._lines.extend(complete)
        return len(text)

    def log(self, *args: object) -> None:
        self.write(" ".join(str(arg) for arg in args) + "\n")

    def logf(self, fmt: str, *args: object) -> None:
        self.write((fmt % args if args else fmt) + "\n")

    def flush(self) -> None:
        """Emit everything buffered so far, including an unterminated last line."""
        with self._lock:
            lines, self._lines = self._lines, []
            if self._partial:
                lines.append(self._partial)
                self._partial = ""
        for line in lines:
            self._target.info("%s%s", self.prefix, line)
