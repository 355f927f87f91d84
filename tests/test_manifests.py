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

"""Tests for manifest installation."""

from __future__ import annotations

import logging

import pytest

from kube_harness.errors import HarnessError
from kube_harness.manifests import install_manifests, manifest_files

POD = """
apiVersion: v1
kind: Pod
metadata:
  name: web
spec:
  containers:
    - name: web
      image: nginx
"""

NAMESPACE = """
apiVersion: v1
kind: Namespace
metadata:
  name: prod
"""

DEPLOYMENT = """
apiVersion: apps/v1
kind: Deployment
metadata:
  name: api
  namespace: prod
spec:
  replicas: 1
"""


@pytest.fixture
def manifests_dir(tmp_path):
    (tmp_path / "pod.yaml").write_text(POD)
    (tmp_path / "namespace.yml").write_text(NAMESPACE)
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "deployment.yaml").write_text(DEPLOYMENT)
    (tmp_path / "README.md").write_text("not a manifest")
    return tmp_path


def test_manifest_files_filters_by_extension(manifests_dir):
    names = [path.name for path in manifest_files(manifests_dir)]
    assert sorted(names) == ["deployment.yaml", "namespace.yml", "pod.yaml"]


def test_install_manifests(fake_client, discovery, manifests_dir, caplog):
    caplog.set_level(logging.INFO, logger="kube_harness")

    installed = install_manifests(fake_client, discovery, manifests_dir)

    assert len(installed) == 3
    by_kind = {obj["kind"]: obj for obj in installed}
    assert by_kind["Pod"]["metadata"]["namespace"] == "default"
    assert "namespace" not in by_kind["Namespace"]["metadata"]
    assert by_kind["Deployment"]["metadata"]["namespace"] == "prod"
    assert "Pod:default/web created" in caplog.text


def test_reinstall_updates(fake_client, discovery, manifests_dir, caplog):
    install_manifests(fake_client, discovery, manifests_dir)
    caplog.set_level(logging.INFO, logger="kube_harness")

    install_manifests(fake_client, discovery, manifests_dir)

    assert "Pod:default/web updated" in caplog.text
    assert len(fake_client.objects()) == 3


def test_kind_filter(fake_client, discovery, manifests_dir):
    installed = install_manifests(
        fake_client, discovery, manifests_dir, {"apiVersion": "apps/v1", "kind": "Deployment"}
    )
    assert [obj["kind"] for obj in installed] == ["Deployment"]


def test_unknown_kind_fails(fake_client, discovery, tmp_path):
    (tmp_path / "widget.yaml").write_text("apiVersion: example.com/v1\nkind: Widget\nmetadata:\n  name: w\n")
    with pytest.raises(HarnessError, match="error creating resource Widget:/w"):
        install_manifests(fake_client, discovery, tmp_path)


def test_malformed_manifest_fails(fake_client, discovery, tmp_path):
    (tmp_path / "broken.yaml").write_text("kind: [unclosed")
    with pytest.raises(HarnessError, match="error loading manifests"):
        install_manifests(fake_client, discovery, tmp_path)
