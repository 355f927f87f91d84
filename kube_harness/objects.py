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

"""Identity, copying, marshalling and YAML loading of unstructured objects.

Objects are plain ``dict`` documents as returned by the dynamic client's
``to_dict()``; typed harness documents (see ``kube_harness.apis``) are
converted back to dicts with ``to_unstructured`` before use here.
"""

from __future__ import annotations

import copy
import difflib
import json
from pathlib import Path
from typing import IO, Any, NamedTuple

import yaml

from kube_harness import logger
from kube_harness.constants import DIFF_CONTEXT_LINES, REVISION_ANNOTATION, SCRUBBED_METADATA_FIELDS


class ObjectKey(NamedTuple):
    """Name and namespace identifying an object within its kind."""

    name: str
    namespace: str = ""


class GroupVersionKind(NamedTuple):
    group: str
    version: str
    kind: str

    @property
    def group_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def __str__(self) -> str:
        return f"{self.group_version}, Kind={self.kind}"


# ============================================================================
# Identity
# ============================================================================

def to_unstructured(obj: Any) -> dict:
    """Return *obj* as a plain dict, dumping typed documents by alias."""
    if isinstance(obj, dict):
        return obj
    return obj.model_dump(by_alias=True, exclude_none=True)


def metadata(obj: dict) -> dict:
    return obj.setdefault("metadata", {})


def gvk(obj: dict) -> GroupVersionKind:
    """Split ``apiVersion`` and ``kind`` into a GroupVersionKind."""
    api_version = obj.get("apiVersion", "")
    group, _, version = api_version.rpartition("/")
    return GroupVersionKind(group, version, obj.get("kind", ""))


def object_key(obj: dict) -> ObjectKey:
    meta = obj.get("metadata") or {}
    return ObjectKey(meta.get("name", ""), meta.get("namespace") or "")


def resource_id(obj: dict) -> str:
    """Human-readable identifier: ``Kind:namespace/name``."""
    key = object_key(obj)
    return f"{obj.get('kind', '')}:{key.namespace}/{key.name}"


def matches_kind(obj: dict, *kinds: dict) -> bool:
    """Return True if the group, version and kind of *obj* match any of *kinds*."""
    target = gvk(obj)
    return any(gvk(kind) == target for kind in kinds)


# ============================================================================
# Construction and copies
# ============================================================================

def new_resource(api_version: str, kind: str, name: str, namespace: str = "") -> dict:
    meta: dict[str, Any] = {"name": name}
    if namespace:
        meta["namespace"] = namespace
    return {"apiVersion": api_version, "kind": kind, "metadata": meta}


def new_pod(name: str, namespace: str = "") -> dict:
    return new_resource("v1", "Pod", name, namespace)


def new_cluster_role_binding(api_version: str, kind: str, name: str, namespace: str,
                             service_account: str, role_name: str) -> dict:
    """Bind the ClusterRole *role_name* to a service account.

    The binding itself is cluster-scoped; *namespace* is the service account's.
    """
    binding = new_resource(api_version, kind, name)
    binding["roleRef"] = {
        "apiGroup": "rbac.authorization.k8s.io",
        "kind": "ClusterRole",
        "name": role_name,
    }
    binding["subjects"] = [{"kind": "ServiceAccount", "name": service_account, "namespace": namespace}]
    return binding


def with_namespace(obj: dict, namespace: str) -> dict:
    """Return a copy of *obj* with its namespace set, regardless of scope."""
    obj = copy.deepcopy(obj)
    metadata(obj)["namespace"] = namespace
    return obj


def with_key_value(obj: dict, key: str, value: dict) -> dict:
    obj = copy.deepcopy(obj)
    obj[key] = copy.deepcopy(value)
    return obj


def with_spec(obj: dict, spec: dict) -> dict:
    return with_key_value(obj, "spec", spec)


def with_status(obj: dict, status: dict) -> dict:
    return with_key_value(obj, "status", status)


def with_labels(obj: dict, labels: dict[str, str]) -> dict:
    obj = copy.deepcopy(obj)
    metadata(obj)["labels"] = dict(labels)
    return obj


def with_annotations(obj: dict, annotations: dict[str, str]) -> dict:
    obj = copy.deepcopy(obj)
    metadata(obj)["annotations"] = dict(annotations)
    return obj


def set_annotation(obj: dict, key: str, value: str) -> dict:
    obj = copy.deepcopy(obj)
    annotations = metadata(obj).get("annotations") or {}
    annotations[key] = value
    metadata(obj)["annotations"] = annotations
    return obj


def patch_object(actual: dict, expected: dict) -> None:
    """Carry the server-observed resourceVersion from *actual* onto *expected*."""
    metadata(expected)["resourceVersion"] = (actual.get("metadata") or {}).get("resourceVersion")


# ============================================================================
# Marshalling
# ============================================================================

def clean_object_for_marshalling(obj: dict) -> dict:
    """Return a copy of *obj* without server-populated metadata."""
    cleaned = copy.deepcopy(obj)
    meta = metadata(cleaned)
    for field in SCRUBBED_METADATA_FIELDS:
        meta.pop(field, None)

    annotations = meta.get("annotations") or {}
    annotations.pop(REVISION_ANNOTATION, None)
    if annotations:
        meta["annotations"] = annotations
    else:
        meta.pop("annotations", None)
    return cleaned


def marshal_object(obj: dict, stream: IO[str] | None = None) -> str:
    """Dump a cleaned copy of *obj* as YAML, also writing it to *stream* if given."""
    text = yaml.safe_dump(clean_object_for_marshalling(obj), default_flow_style=False)
    if stream is not None:
        stream.write(text)
    return text


def marshal_object_json(obj: dict, stream: IO[str] | None = None) -> str:
    text = json.dumps(clean_object_for_marshalling(obj), sort_keys=True)
    if stream is not None:
        stream.write(text)
    return text


def pretty_diff(expected: dict, actual: dict) -> str:
    """Unified diff of the YAML forms of two objects, labelled by resource id."""
    diff = difflib.unified_diff(
        marshal_object(expected).splitlines(keepends=True),
        marshal_object(actual).splitlines(keepends=True),
        fromfile=resource_id(expected),
        tofile=resource_id(actual),
        n=DIFF_CONTEXT_LINES,
    )
    return "".join(diff)


# ============================================================================
# YAML loading
# ============================================================================

def load_yaml(path: str, stream: IO[str] | str) -> list[Any]:
    """Decode every document in *stream*, converting known harness kinds.

    Args:
        path: Source name used in error and log messages.
        stream: YAML or JSON text, or a readable text stream.

    Returns:
        Decoded objects in document order; documents without a kind are skipped.

    Raises:
        ValueError: If a document cannot be parsed or converted.
    """
    from kube_harness.scheme import convert_unstructured

    objects: list[Any] = []
    try:
        documents = list(yaml.safe_load_all(stream))
    except yaml.YAMLError as err:
        raise ValueError(f"error decoding yaml {path}: {err}") from err

    for document in documents:
        if not isinstance(document, dict) or not document.get("kind"):
            logger.info("object detected with no GVK Kind for path %s", path)
            continue
        try:
            objects.append(convert_unstructured(document))
        except ValueError as err:
            raise ValueError(
                f"error converting unstructured object {resource_id(document)} ({path}): {err}"
            ) from err
    return objects


def load_yaml_file(path: str | Path) -> list[Any]:
    with open(path) as f:
        return load_yaml(str(path), f)
