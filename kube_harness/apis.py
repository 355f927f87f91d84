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

"""Typed harness documents decoded from test-step YAML."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Command(_Document):
    """A shell command (or script) run as part of a test step.

    Attributes:
        command: Inline command line, split respecting quotes.
        script: Script body run via ``sh -c``; exclusive with ``command``.
        namespaced: Append ``--namespace <ns>`` unless the command sets one.
        background: Start the process and hand it back without waiting.
        ignore_failure: Treat a nonzero exit as success.
        skip_log_output: Discard the process output.
        timeout: 0 inherits the caller default, negative disables, positive overrides.
    """

    command: str = ""
    script: str = ""
    namespaced: bool = False
    background: bool = False
    ignore_failure: bool = False
    skip_log_output: bool = False
    timeout: int = 0


class ObjectReference(_Document):
    api_version: str = ""
    kind: str = ""
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)


class _Typed(_Document):
    api_version: str = ""
    kind: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class TestStep(_Typed):
    __test__ = False

    index: int = 0
    commands: list[Command] = Field(default_factory=list)
    delete: list[ObjectReference] = Field(default_factory=list)
    apply: list[str] = Field(default_factory=list)
    assert_: list[str] = Field(default_factory=list, alias="assert")
    error: list[str] = Field(default_factory=list)
    unit_test: bool = False


class TestAssert(_Typed):
    __test__ = False

    timeout: int = 0
    commands: list[Command] = Field(default_factory=list)


class TestSuite(_Typed):
    __test__ = False

    crd_dir: str = ""
    manifest_dirs: list[str] = Field(default_factory=list)
    test_dirs: list[str] = Field(default_factory=list)
    commands: list[Command] = Field(default_factory=list)
    timeout: int = 30
    namespace: str = ""
    parallel: int = 8
    skip_delete: bool = False
