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

"""Serialize a client configuration as a self-contained kubeconfig."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import IO

import yaml
from kubernetes.client import Configuration

CLUSTER_NAME = "cluster"
USER_NAME = "user"


def _inline(path: str | None) -> str | None:
    """Read a PEM file into the base64 form used by ``*-data`` kubeconfig fields."""
    if not path:
        return None
    return base64.b64encode(Path(path).read_bytes()).decode()


def _bearer_token(configuration: Configuration) -> str | None:
    token = (configuration.api_key or {}).get("authorization") or (configuration.api_key or {}).get("BearerToken")
    if not token:
        return None
    prefix = "Bearer "
    return token[len(prefix):] if token.startswith(prefix) else token


def _without_empty(values: dict) -> dict:
    return {key: value for key, value in values.items() if value not in (None, "", False)}


def kubeconfig_document(configuration: Configuration) -> dict:
    """Build a kubeconfig with one cluster, one user and one current context.

    Certificate and key files referenced by *configuration* are inlined so the
    result does not depend on the files it was loaded from.

    Raises:
        OSError: If a referenced certificate or key file cannot be read.
    """
    cluster = _without_empty({
        "server": configuration.host,
        "certificate-authority-data": _inline(configuration.ssl_ca_cert),
        "insecure-skip-tls-verify": not configuration.verify_ssl,
    })
    user = _without_empty({
        "client-certificate-data": _inline(configuration.cert_file),
        "client-key-data": _inline(configuration.key_file),
        "token": _bearer_token(configuration),
        "username": configuration.username,
        "password": configuration.password,
    })

    return {
        "apiVersion": "v1",
        "kind": "Config",
        "current-context": CLUSTER_NAME,
        "clusters": [{"name": CLUSTER_NAME, "cluster": cluster}],
        "contexts": [{"name": CLUSTER_NAME, "context": {"cluster": CLUSTER_NAME, "user": USER_NAME}}],
        "users": [{"name": USER_NAME, "user": user}],
        "preferences": {},
    }


def write_kubeconfig(configuration: Configuration, stream: IO[str]) -> None:
    """Write *configuration* to *stream* as kubeconfig YAML."""
    yaml.safe_dump(kubeconfig_document(configuration), stream, default_flow_style=False)
