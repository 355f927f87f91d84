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

"""Registry of typed documents keyed by ``{group, kind}``."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from kube_harness.apis import TestAssert, TestStep, TestSuite
from kube_harness.constants import (
    HARNESS_GROUP,
    HARNESS_GROUP_DEPRECATED,
    KIND_TEST_ASSERT,
    KIND_TEST_STEP,
    KIND_TEST_SUITE,
)
from kube_harness.objects import gvk

Decoder = Callable[[dict], Any]


class KindRegistry:
    """Maps ``(group, kind)`` to a decoder producing a typed object."""

    def __init__(self) -> None:
        self._decoders: dict[tuple[str, str], Decoder] = {}
        self._lock = threading.Lock()

    def register(self, group: str, kind: str, decoder: Decoder) -> None:
        with self._lock:
            self._decoders[(group, kind)] = decoder

    def lookup(self, group: str, kind: str) -> Decoder | None:
        with self._lock:
            return self._decoders.get((group, kind))

    def convert(self, obj: dict) -> Any:
        """Decode *obj* into its registered type, or return it unchanged.

        Raises:
            ValueError: If a registered decoder rejects the document.
        """
        group, _, kind = gvk(obj)
        decoder = self.lookup(group, kind)
        if decoder is None:
            return obj
        try:
            return decoder(obj)
        except ValidationError as err:
            raise ValueError(str(err)) from err


registry = KindRegistry()

_init_lock = threading.Lock()
_initialized = False


def init_scheme() -> KindRegistry:
    """Register the harness document kinds, once per process.

    The deprecated ``kudo.dev`` group decodes to the same types as ``kuttl.dev``.
    """
    global _initialized
    with _init_lock:
        if not _initialized:
            for group in (HARNESS_GROUP, HARNESS_GROUP_DEPRECATED):
                registry.register(group, KIND_TEST_STEP, TestStep.model_validate)
                registry.register(group, KIND_TEST_ASSERT, TestAssert.model_validate)
                registry.register(group, KIND_TEST_SUITE, TestSuite.model_validate)
            _initialized = True
    return registry


def convert_unstructured(obj: dict) -> Any:
    """Convert *obj* through the process-wide registry.

    Kinds are only decoded once the entry point has called :func:`init_scheme`;
    before that every document passes through unchanged.
    """
    return registry.convert(obj)
