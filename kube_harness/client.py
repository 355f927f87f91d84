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

"""Object client with built-in retries, upsert, and convergence waits."""

from __future__ import annotations

import copy
import json
from collections.abc import Callable, Iterator
from typing import Any, NamedTuple, Protocol

from kubernetes import config
from kubernetes.client import ApiClient
from kubernetes.dynamic import DynamicClient
from kubernetes.watch.watch import iter_resp_lines

from kube_harness import logger
from kube_harness.constants import (
    CRD_GROUP,
    CRD_KIND,
    MERGE_PATCH_CONTENT_TYPE,
    POLL_INTERVAL_SECONDS,
    POLL_TIMEOUT_SECONDS,
)
from kube_harness.context import Context, background
from kube_harness.discovery import APIResource, DiscoveryClient, KubernetesDiscoveryClient, get_api_resource
from kube_harness.errors import (
    HarnessError,
    is_already_exists,
    is_conflict,
    is_json_syntax_error,
    is_not_found,
)
from kube_harness.objects import (
    GroupVersionKind,
    ObjectKey,
    gvk,
    object_key,
    patch_object,
    resource_id,
    to_unstructured,
)
from kube_harness.poll import poll_immediate
from kube_harness.retry import ErrorClassifier, retry


class ObjectClient(Protocol):
    """CRUD access to remote objects; every call may take a bounding context."""

    def get(self, obj: dict, ctx: Context | None = None) -> dict: ...

    def list(self, api_version: str, kind: str, namespace: str = "",
             label_selector: str | None = None, ctx: Context | None = None) -> list[dict]: ...

    def create(self, obj: dict, ctx: Context | None = None) -> dict: ...

    def update(self, obj: dict, ctx: Context | None = None) -> dict: ...

    def patch(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
              ctx: Context | None = None) -> dict: ...

    def delete(self, obj: dict, ctx: Context | None = None) -> None: ...

    def delete_all_of(self, api_version: str, kind: str, namespace: str = "",
                      label_selector: str | None = None, ctx: Context | None = None) -> None: ...

    def update_status(self, obj: dict, ctx: Context | None = None) -> dict: ...

    def patch_status(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
                     ctx: Context | None = None) -> dict: ...

    def watch(self, resource: APIResource, key: ObjectKey) -> Iterator[dict]: ...


class ReconcileOutcome(NamedTuple):
    """Result of an upsert: whether an existing object was updated, and its final state."""

    updated: bool
    object: dict

    @property
    def action(self) -> str:
        return "updated" if self.updated else "created"


# ============================================================================
# Kubernetes-backed object client
# ============================================================================

def _request_kwargs(ctx: Context | None) -> dict:
    remaining = ctx.remaining() if ctx is not None else None
    return {"_request_timeout": remaining} if remaining else {}


class KubernetesObjectClient:
    """ObjectClient on top of the official dynamic client.

    A context deadline bounds each HTTP request through ``_request_timeout``.
    """

    def __init__(self, api_client: ApiClient) -> None:
        self._dynamic = DynamicClient(api_client)

    def _resource(self, api_version: str, kind: str):
        return self._dynamic.resources.get(api_version=api_version, kind=kind)

    def _for(self, obj: dict):
        return self._resource(obj["apiVersion"], obj["kind"])

    def get(self, obj: dict, ctx: Context | None = None) -> dict:
        key = object_key(obj)
        return self._for(obj).get(
            name=key.name, namespace=key.namespace or None, **_request_kwargs(ctx)
        ).to_dict()

    def list(self, api_version: str, kind: str, namespace: str = "",
             label_selector: str | None = None, ctx: Context | None = None) -> list[dict]:
        result = self._resource(api_version, kind).get(
            namespace=namespace or None, label_selector=label_selector, **_request_kwargs(ctx)
        )
        return result.to_dict().get("items", [])

    def create(self, obj: dict, ctx: Context | None = None) -> dict:
        key = object_key(obj)
        return self._for(obj).create(
            body=obj, namespace=key.namespace or None, **_request_kwargs(ctx)
        ).to_dict()

    def update(self, obj: dict, ctx: Context | None = None) -> dict:
        key = object_key(obj)
        return self._for(obj).replace(
            body=obj, namespace=key.namespace or None, **_request_kwargs(ctx)
        ).to_dict()

    def patch(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
              ctx: Context | None = None) -> dict:
        key = object_key(obj)
        return self._for(obj).patch(
            body=body, name=key.name, namespace=key.namespace or None,
            content_type=content_type, **_request_kwargs(ctx)
        ).to_dict()

    def delete(self, obj: dict, ctx: Context | None = None) -> None:
        key = object_key(obj)
        self._for(obj).delete(name=key.name, namespace=key.namespace or None, **_request_kwargs(ctx))

    def delete_all_of(self, api_version: str, kind: str, namespace: str = "",
                      label_selector: str | None = None, ctx: Context | None = None) -> None:
        resource = self._resource(api_version, kind)
        self._dynamic.request(
            "delete", resource.path(namespace=namespace or None),
            label_selector=label_selector, **_request_kwargs(ctx)
        )

    def update_status(self, obj: dict, ctx: Context | None = None) -> dict:
        key = object_key(obj)
        return self._for(obj).status.replace(
            body=obj, namespace=key.namespace or None, **_request_kwargs(ctx)
        ).to_dict()

    def patch_status(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
                     ctx: Context | None = None) -> dict:
        key = object_key(obj)
        return self._for(obj).status.patch(
            body=body, name=key.name, namespace=key.namespace or None,
            content_type=content_type, **_request_kwargs(ctx)
        ).to_dict()

    def watch(self, resource: APIResource, key: ObjectKey) -> Iterator[dict]:
        """Open a watch on one object and return its event stream.

        The request is sent before this returns, so a failure to open the
        watch is raised here rather than on the first ``next()``.
        """
        served = self._dynamic.resources.get(api_version=resource.group_version, name=resource.name)
        response = served.get(
            namespace=key.namespace or None,
            field_selector=f"metadata.name={key.name}",
            watch=True,
            serialize=False,
            _preload_content=False,
        )
        return _watch_events(response)


def _watch_events(response) -> Iterator[dict]:
    """Decode the newline-delimited events of an open watch response."""
    try:
        for line in iter_resp_lines(response):
            if not line:
                continue
            event = json.loads(line)
            yield {"type": event["type"], "object": event["object"]}
    finally:
        response.close()
        response.release_conn()


# ============================================================================
# Retrying client
# ============================================================================

def _retried(ctx: Context | None, call: Callable[[Context], Any],
             *classifiers: ErrorClassifier) -> Any:
    """Run *call* through ``retry`` and hand back what the successful attempt returned."""
    result: dict[str, Any] = {}

    def _attempt(attempt_ctx: Context) -> None:
        result["value"] = call(attempt_ctx)

    retry(ctx if ctx is not None else background(), _attempt, *classifiers)
    return result.get("value")


class RetryStatusWriter:
    """Status subresource writer with built-in retries."""

    def __init__(self, client: ObjectClient) -> None:
        self._client = client

    def update(self, obj: dict, ctx: Context | None = None) -> dict:
        return _retried(ctx, lambda c: self._client.update_status(obj, ctx=c), is_json_syntax_error)

    def patch(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
              ctx: Context | None = None) -> dict:
        return _retried(
            ctx, lambda c: self._client.patch_status(obj, body, content_type, ctx=c), is_json_syntax_error
        )


class RetryClient:
    """ObjectClient wrapper that retries every call on malformed response bodies.

    Any other error propagates on first occurrence.

    Attributes:
        client: Wrapped object client.
        discovery: Discovery client used to resolve kinds for watches.
    """

    def __init__(self, client: ObjectClient, discovery: DiscoveryClient) -> None:
        self.client = client
        self.discovery = discovery

    def get(self, obj: dict, ctx: Context | None = None) -> dict:
        return _retried(ctx, lambda c: self.client.get(obj, ctx=c), is_json_syntax_error)

    def list(self, api_version: str, kind: str, namespace: str = "",
             label_selector: str | None = None, ctx: Context | None = None) -> list[dict]:
        return _retried(
            ctx,
            lambda c: self.client.list(api_version, kind, namespace, label_selector, ctx=c),
            is_json_syntax_error,
        )

    def create(self, obj: dict, ctx: Context | None = None) -> dict:
        return _retried(ctx, lambda c: self.client.create(obj, ctx=c), is_json_syntax_error)

    def update(self, obj: dict, ctx: Context | None = None) -> dict:
        return _retried(ctx, lambda c: self.client.update(obj, ctx=c), is_json_syntax_error)

    def patch(self, obj: dict, body: dict, content_type: str = MERGE_PATCH_CONTENT_TYPE,
              ctx: Context | None = None) -> dict:
        return _retried(
            ctx, lambda c: self.client.patch(obj, body, content_type, ctx=c), is_json_syntax_error
        )

    def delete(self, obj: dict, ctx: Context | None = None) -> None:
        _retried(ctx, lambda c: self.client.delete(obj, ctx=c), is_json_syntax_error)

    def delete_all_of(self, api_version: str, kind: str, namespace: str = "",
                      label_selector: str | None = None, ctx: Context | None = None) -> None:
        _retried(
            ctx,
            lambda c: self.client.delete_all_of(api_version, kind, namespace, label_selector, ctx=c),
            is_json_syntax_error,
        )

    def status(self) -> RetryStatusWriter:
        return RetryStatusWriter(self.client)

    def watch(self, obj: dict, ctx: Context | None = None) -> Iterator[dict]:
        """Open an event stream for the single object *obj*.

        Not retried: reconnecting mid-stream would lose event ordering.

        Raises:
            HarnessError: If discovery does not know the object's kind.
        """
        resource = get_api_resource(self.discovery, gvk(obj))
        return self.client.watch(resource, object_key(obj))


def new_retry_client(kubeconfig: str | None = None, context: str | None = None) -> RetryClient:
    """Build a RetryClient from a kubeconfig file.

    Args:
        kubeconfig: Path to the kubeconfig, or None for the default location.
        context: Kubeconfig context to use, or None for the current one.

    Raises:
        HarnessError: If the kubeconfig cannot be loaded.
    """
    try:
        api_client = config.new_client_from_config(config_file=kubeconfig, context=context)
    except config.ConfigException as err:
        logger.error("Found error while loading Kubernetes config file. %s", err)
        raise HarnessError("Invalid Kubernetes config file") from err
    return RetryClient(KubernetesObjectClient(api_client), KubernetesDiscoveryClient(api_client))


# ============================================================================
# Upsert
# ============================================================================

def create_or_update(client: ObjectClient | RetryClient, obj: Any, retry_on_conflict: bool,
                     ctx: Context | None = None) -> ReconcileOutcome:
    """Create *obj* if it does not exist, otherwise merge-patch it.

    Every attempt re-reads the object and carries the observed resourceVersion
    into the patch, so an update never goes out with a stale or empty version.
    AlreadyExists (a concurrent creator won) is always retried; a version
    Conflict only when *retry_on_conflict* is set.

    Args:
        client: Object client to act through.
        obj: Desired state of the object.
        retry_on_conflict: Whether to retry on optimistic-concurrency conflicts.
        ctx: Context bounding the whole upsert; unbounded when None.

    Returns:
        ReconcileOutcome with ``updated`` False for a create, True for a patch.
    """
    original = copy.deepcopy(to_unstructured(obj))
    outcome: dict[str, ReconcileOutcome] = {}

    classifiers: list[ErrorClassifier] = [is_already_exists]
    if retry_on_conflict:
        classifiers.append(is_conflict)

    def _attempt(attempt_ctx: Context) -> None:
        expected = copy.deepcopy(original)
        try:
            actual = client.get(expected, ctx=attempt_ctx)
        except Exception as err:
            if not is_not_found(err):
                raise
            created = client.create(copy.deepcopy(original), ctx=attempt_ctx)
            outcome["result"] = ReconcileOutcome(False, created)
            return

        patch_object(actual, expected)
        patched = client.patch(actual, expected, MERGE_PATCH_CONTENT_TYPE, ctx=attempt_ctx)
        outcome["result"] = ReconcileOutcome(True, patched)

    retry(ctx if ctx is not None else background(), _attempt, *classifiers)
    return outcome["result"]


# ============================================================================
# Convergence waits
# ============================================================================

def wait_for_delete(client: ObjectClient | RetryClient, objs: list[dict],
                    interval: float = POLL_INTERVAL_SECONDS,
                    timeout: float = POLL_TIMEOUT_SECONDS) -> None:
    """Wait until every object in *objs* reads as NotFound.

    Raises:
        DeadlineExceeded: If an object still exists after *timeout*.
        Exception: Any read error other than NotFound.
    """

    def _all_deleted() -> bool:
        for obj in objs:
            try:
                client.get(copy.deepcopy(obj))
            except Exception as err:
                if is_not_found(err):
                    continue
                raise
            return False
        return True

    poll_immediate(interval, timeout, _all_deleted)


def crd_kind(crd: dict) -> GroupVersionKind:
    """Extract the group, version and kind a CRD registers.

    Raises:
        HarnessError: If *crd* is not a CustomResourceDefinition or lacks the fields.
    """
    kind = gvk(crd)
    if kind.group != CRD_GROUP or kind.kind != CRD_KIND:
        raise HarnessError(f"the following passed object is not a CRD: {resource_id(crd)}")

    spec = crd.get("spec") or {}
    version = spec.get("version")
    if not version:
        served = [v.get("name") for v in spec.get("versions") or [] if v.get("served", True)]
        version = served[0] if served else None
    group = spec.get("group")
    names_kind = (spec.get("names") or {}).get("kind")
    if not (group and version and names_kind):
        raise HarnessError(f"CRD {resource_id(crd)} does not declare a group, version and kind")
    return GroupVersionKind(group, version, names_kind)


def wait_for_crds(discovery: DiscoveryClient, crds: list[Any],
                  interval: float = POLL_INTERVAL_SECONDS,
                  timeout: float = POLL_TIMEOUT_SECONDS) -> None:
    """Wait until discovery serves every type registered by *crds*.

    Raises:
        HarnessError: If any object is not a CRD.
        DeadlineExceeded: If a type is still unknown after *timeout*.
    """
    waiting_for = [crd_kind(to_unstructured(crd)) for crd in crds]

    def _all_served() -> bool:
        for kind in waiting_for:
            try:
                get_api_resource(discovery, kind)
            except Exception:
                logger.info("Waiting for resource %s...", kind)
                return False
        return True

    poll_immediate(interval, timeout, _all_served)
