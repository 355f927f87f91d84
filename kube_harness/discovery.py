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

"""API resource discovery: kind lookups and namespace scoping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from kubernetes.client import ApiClient, CoreV1Api, CustomObjectsApi
from kubernetes.client.exceptions import ApiException

from kube_harness.errors import HarnessError
from kube_harness.objects import GroupVersionKind, gvk, metadata


@dataclass(frozen=True)
class APIResource:
    """One entry of a server's resource list for a group version.

    Attributes:
        name: Plural resource name used in request paths.
        kind: Kind served by the resource.
        namespaced: Whether objects of the kind live in a namespace.
        group_version: Group version that serves the resource.
    """

    name: str
    kind: str
    namespaced: bool
    group_version: str = ""


class DiscoveryClient(Protocol):
    def server_resources_for_group_version(self, group_version: str) -> list[APIResource]: ...


class KubernetesDiscoveryClient:
    """Uncached discovery against a live API server.

    Uncached so that newly registered CRDs show up on the next lookup.
    """

    def __init__(self, api_client: ApiClient) -> None:
        self._api_client = api_client

    def server_resources_for_group_version(self, group_version: str) -> list[APIResource]:
        group, _, version = group_version.rpartition("/")
        if group:
            resource_list = CustomObjectsApi(self._api_client).get_api_resources(group, version)
        elif version == "v1":
            resource_list = CoreV1Api(self._api_client).get_api_resources()
        else:
            raise ApiException(status=404, reason=f"the server could not find {group_version}")

        return [
            APIResource(
                name=resource.name,
                kind=resource.kind,
                namespaced=bool(resource.namespaced),
                group_version=group_version,
            )
            for resource in resource_list.resources or []
            if "/" not in resource.name
        ]


def get_api_resource(discovery: DiscoveryClient, kind: GroupVersionKind) -> APIResource:
    """Return the discovery entry serving *kind*, matching the kind case-insensitively.

    Raises:
        HarnessError: If the group version has no resource of that kind.
    """
    for resource in discovery.server_resources_for_group_version(kind.group_version):
        if resource.kind.lower() == kind.kind.lower():
            return resource
    raise HarnessError("resource type not found")


def namespaced(discovery: DiscoveryClient, obj: dict, namespace: str) -> tuple[str, str]:
    """Default the namespace of *obj* in place if its kind is namespace-scoped.

    An existing namespace is kept; cluster-scoped kinds stay without one.

    Returns:
        Tuple of (name, namespace) after defaulting.

    Raises:
        HarnessError: If the kind cannot be found through discovery.
    """
    meta = metadata(obj)
    if meta.get("namespace"):
        return meta.get("name", ""), meta["namespace"]

    kind = gvk(obj)
    try:
        resource = get_api_resource(discovery, kind)
    except Exception as err:
        raise HarnessError(f"retrieving API resource for {kind} failed: {err}") from err

    if not resource.namespaced:
        return meta.get("name", ""), ""

    meta["namespace"] = namespace
    return meta.get("name", ""), namespace
