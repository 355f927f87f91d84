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

"""Install every manifest found under a directory tree."""

from __future__ import annotations

from pathlib import Path

from kube_harness import logger
from kube_harness.client import ObjectClient, RetryClient, create_or_update
from kube_harness.constants import MANIFEST_EXTENSIONS, NS_DEFAULT
from kube_harness.context import Context
from kube_harness.discovery import DiscoveryClient, namespaced
from kube_harness.errors import HarnessError
from kube_harness.objects import load_yaml_file, matches_kind, resource_id, to_unstructured


def manifest_files(manifests_dir: str | Path) -> list[Path]:
    """Return manifest files under *manifests_dir* in a stable order."""
    return sorted(
        path for path in Path(manifests_dir).rglob("*")
        if path.is_file() and path.suffix in MANIFEST_EXTENSIONS
    )


def install_manifests(
    client: ObjectClient | RetryClient,
    discovery: DiscoveryClient,
    manifests_dir: str | Path,
    *kinds: dict,
    ctx: Context | None = None,
) -> list[dict]:
    """Create or update every object in *manifests_dir*.

    Namespace-scoped objects without a namespace land in ``default``. Updates
    are retried on version conflicts.

    Args:
        client: Object client to install through.
        discovery: Discovery client used to decide namespace scoping.
        manifests_dir: Root directory, walked recursively.
        *kinds: If given, only objects matching one of these kinds are installed.
        ctx: Context bounding each upsert.

    Returns:
        The installed objects in the state the server returned.

    Raises:
        HarnessError: If a file cannot be loaded or an object cannot be installed.
    """
    installed: list[dict] = []

    for path in manifest_files(manifests_dir):
        try:
            objects = load_yaml_file(path)
        except (OSError, ValueError) as err:
            raise HarnessError(f"error loading manifests from {path}: {err}") from err

        for obj in objects:
            obj = to_unstructured(obj)
            if kinds and not matches_kind(obj, *kinds):
                continue

            try:
                namespaced(discovery, obj, NS_DEFAULT)
                outcome = create_or_update(client, obj, True, ctx=ctx)
            except Exception as err:
                raise HarnessError(f"error creating resource {resource_id(obj)}: {err}") from err

            logger.info("%s %s", resource_id(obj), outcome.action)
            installed.append(outcome.object)

    return installed
