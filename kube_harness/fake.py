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

"""In-memory stand-ins for the API server, for tests and dry runs.

``FakeObjectClient`` behaves like a single API server: objects get a
monotonically increasing ``resourceVersion``, stale writes fail with
Conflict, and every error is an ``ApiException`` whose body carries the same
``Status`` reason the real server would send.
"""

from __future__ import annotations

import copy
import json
import queue
import threading
from collections import defaultdict, deque
from collections.abc import Iterator

from kubernetes.client.exceptions import ApiException

from kube_harness.constants import (
    MERGE_PATCH_CONTENT_TYPE,
    REASON_ALREADY_EXISTS,
    REASON_CONFLICT,
    REASON_NOT_FOUND,
)
from kube_harness.context import Context
from kube_harness.discovery import APIResource
from kube_harness.objects import ObjectKey, metadata, object_key

_WATCH_CLOSED = object()


def api_error(status: int, reason: str, message: str = "") -> ApiException:
    """Build an ``ApiException`` shaped like an API server ``Status`` failure."""
    err = ApiException(status=status, reason=reason)
    err.body = json.dumps({
        "kind": "Status",
        "apiVersion": "v1",
        "status": "Failure",
        "message": message,
        "reason": reason,
        "code": status,
    })
    return err


def merge_patch(target: dict, patch: dict) -> dict:
    """Apply a JSON merge patch; ``None`` values delete keys."""
    result = copy.deepcopy(target)
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        elif isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_patch(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _matches_selector(obj: dict, label_selector: str | None) -> bool:
    if not label_selector:
        return True
    labels = metadata(obj).get("labels") or {}
    for requirement in label_selector.split(","):
        key, _, value = requirement.partition("=")
        if labels.get(key.strip()) != value.strip():
            return False
    return True


# ============================================================================
# Discovery
# ============================================================================

DEFAULT_RESOURCES: dict[str, list[APIResource]] = {
    "v1": [
        APIResource("pods", "Pod", True, "v1"),
        APIResource("namespaces", "Namespace", False, "v1"),
        APIResource("services", "Service", True, "v1"),
    ],
    "apps/v1": [
        APIResource("statefulsets", "StatefulSet", True, "apps/v1"),
        APIResource("deployments", "Deployment", True, "apps/v1"),
    ],
    "batch/v1": [
        APIResource("jobs", "Job", True, "batch/v1"),
    ],
    "batch/v1beta1": [
        APIResource("cronjobs", "CronJob", True, "batch/v1beta1"),
    ],
    "apiextensions.k8s.io/v1beta1": [
        APIResource("customresourcedefinitions", "CustomResourceDefinition", False,
                    "apiextensions.k8s.io/v1beta1"),
    ],
}


class FakeDiscoveryClient:
    """Discovery backed by a mutable table of group versions.

    Unknown group versions fail with NotFound, as on a real server.
    """

    def __init__(self, resources: dict[str, list[APIResource]] | None = None) -> None:
        self._lock = threading.Lock()
        source = DEFAULT_RESOURCES if resources is None else resources
        self._resources = {gv: list(entries) for gv, entries in source.items()}
        self.calls = 0

    def add_resource(self, resource: APIResource) -> None:
        """Start serving *resource*, e.g. once a CRD is established."""
        with self._lock:
            self._resources.setdefault(resource.group_version, []).append(resource)

    def server_resources_for_group_version(self, group_version: str) -> list[APIResource]:
        with self._lock:
            self.calls += 1
            if group_version not in self._resources:
                raise api_error(404, REASON_NOT_FOUND, f"the server could not find {group_version}")
            return list(self._resources[group_version])


# ============================================================================
# Object store
# ============================================================================

class FakeObjectClient:
    """Thread-safe in-memory ObjectClient.

    Errors can be queued per method with ``inject`` to simulate transient
    server faults; each queued error is raised once, before the call runs.

    Attributes:
        calls: Number of calls received per method name.
    """

    def __init__(self, *objects: dict) -> None:
        self._lock = threading.Lock()
        self._objects: dict[tuple[str, str, str, str], dict] = {}
        self._version = 0
        self._injected: dict[str, deque[BaseException]] = defaultdict(deque)
        self._watchers: list[tuple[str, str, ObjectKey, queue.Queue]] = []
        self.calls: dict[str, int] = defaultdict(int)
        for obj in objects:
            self.create(obj)

    # -- helpers --

    @staticmethod
    def _key(obj: dict) -> tuple[str, str, str, str]:
        key = object_key(obj)
        return obj.get("apiVersion", ""), obj.get("kind", ""), key.namespace, key.name

    def _enter(self, method: str, ctx: Context | None) -> None:
        self.calls[method] += 1
        if ctx is not None and ctx.error() is not None:
            raise ctx.error()
        if self._injected[method]:
            raise self._injected[method].popleft()

    def _bump(self, obj: dict) -> dict:
        self._version += 1
        metadata(obj)["resourceVersion"] = str(self._version)
        return obj

    def _stored(self, obj: dict) -> dict:
        key = self._key(obj)
        if key not in self._objects:
            raise api_error(404, REASON_NOT_FOUND, f'{obj.get("kind")} "{key[3]}" not found')
        return self._objects[key]

    def _check_version(self, stored: dict, incoming: dict) -> None:
        requested = (incoming.get("metadata") or {}).get("resourceVersion")
        if requested and requested != metadata(stored).get("resourceVersion"):
            raise api_error(
                409, REASON_CONFLICT,
                "the object has been modified; please apply your changes to the latest version and try again",
            )

    def _notify(self, event_type: str, obj: dict) -> None:
        key = object_key(obj)
        for api_version, kind, watched, events in self._watchers:
            if (api_version, kind) == (obj.get("apiVersion"), obj.get("kind")) and watched == key:
                events.put({"type": event_type, "object": copy.deepcopy(obj)})

    def inject(self, method: str, *errors: BaseException) -> None:
        """Queue *errors* to be raised by the next calls of *method*."""
        with self._lock:
            self._injected[method].extend(errors)

    def objects(self) -> list[dict]:
        with self._lock:
            return [copy.deepcopy(obj) for obj in self._objects.values()]

    # -- ObjectClient --

    def get(self, obj: dict, ctx: Context | None = None) -> dict:
        with self._lock:
            self._enter("get", ctx)
            return copy.deepcopy(self._stored(obj))

    def list(self, api_version: str, kind: str, namespace: str = "",
             label_selector: str | None = None, ctx: Context | None = None) -> list[dict]:
        with self._lock:
            self._enter("list", ctx)
            return [
                copy.deepcopy(obj)
                for (av, k, ns, _), obj in self._objects.items()
                if (av, k) == (api_version, kind)
                and (not namespace or ns == namespace)
                and _matches_selector(obj, label_selector)
            ]

    def create(self, obj: dict, ctx: Context | None = None) -> dict:
        with self._lock:
            self._enter("create", ctx)
            key = self._key(obj)
            if key in self._objects:
                raise api_error(409, REASON_ALREADY_EXISTS, f'{obj.get("kind")} "{key[3]}" already exists')
            if (obj.get("metadata") or {}).get("resourceVersion"):
                raise api_error(400, "BadRequest", "resourceVersion can not be set for Create requests")
            stored = self._bump(copy.deepcopy(obj))
            self._objects[key] = stored
            self._notify("ADDED", stored)
            return copy.deepcopy(stored)

    def update(self, obj: dict, ctx: Context | None = None) -> dict:
        with self._lock:
            self._enter("update", ctx)
            stored = self._stored(obj)
            self._check_version(stored, obj)
            updated = copy.deepcopy(obj)
            if "status" in stored:
                updated["status"] = copy.deepcopy(stored["status"])
            self._objects[self._key(obj)] = self._bump(updated)
            self._notify("MODIFIED", updated)
            return copy.deepcopy(updated)

    def patch(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
              ctx: Context | None = None) -> dict:
        with self._lock:
            self._enter("patch", ctx)
            if content_type != MERGE_PATCH_CONTENT_TYPE:
                raise api_error(415, "UnsupportedMediaType", f"unsupported patch type {content_type}")
            stored = self._stored(obj)
            self._check_version(stored, body)
            patched = self._bump(merge_patch(stored, body))
            self._objects[self._key(obj)] = patched
            self._notify("MODIFIED", patched)
            return copy.deepcopy(patched)

    def delete(self, obj: dict, ctx: Context | None = None) -> None:
        with self._lock:
            self._enter("delete", ctx)
            stored = self._stored(obj)
            del self._objects[self._key(obj)]
            self._notify("DELETED", stored)

    def delete_all_of(self, api_version: str, kind: str, namespace: str = "",
                      label_selector: str | None = None, ctx: Context | None = None) -> None:
        with self._lock:
            self._enter("delete_all_of", ctx)
            for key, obj in list(self._objects.items()):
                av, k, ns, _ = key
                if (av, k) == (api_version, kind) and (not namespace or ns == namespace) \
                        and _matches_selector(obj, label_selector):
                    del self._objects[key]
                    self._notify("DELETED", obj)

    def update_status(self, obj: dict, ctx: Context | None = None) -> dict:
        with self._lock:
            self._enter("update_status", ctx)
            stored = self._stored(obj)
            self._check_version(stored, obj)
            updated = copy.deepcopy(stored)
            updated["status"] = copy.deepcopy(obj.get("status"))
            self._objects[self._key(obj)] = self._bump(updated)
            self._notify("MODIFIED", updated)
            return copy.deepcopy(updated)

    def patch_status(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
                     ctx: Context | None = None) -> dict:
        with self._lock:
            self._enter("patch_status", ctx)
            stored = self._stored(obj)
            self._check_version(stored, body)
            updated = copy.deepcopy(stored)
            updated["status"] = merge_patch(stored.get("status") or {}, body.get("status") or {})
            self._objects[self._key(obj)] = self._bump(updated)
            self._notify("MODIFIED", updated)
            return copy.deepcopy(updated)

    def watch(self, resource: APIResource, key: ObjectKey) -> Iterator[dict]:
        """Yield events for one object: its current state first, then every change.

        The stream ends when ``close_watches`` is called.
        """
        events: queue.Queue = queue.Queue()
        with self._lock:
            for (api_version, kind, namespace, name), obj in self._objects.items():
                if api_version == resource.group_version and kind == resource.kind \
                        and ObjectKey(name, namespace) == key:
                    events.put({"type": "ADDED", "object": copy.deepcopy(obj)})
            self._watchers.append((resource.group_version, resource.kind, key, events))
        return self._drain(events)

    @staticmethod
    def _drain(events: queue.Queue) -> Iterator[dict]:
        while True:
            event = events.get()
            if event is _WATCH_CLOSED:
                return
            yield event

    def close_watches(self) -> None:
        with self._lock:
            watchers, self._watchers = self._watchers, []
        for _, _, _, events in watchers:
            events.put(_WATCH_CLOSED)
