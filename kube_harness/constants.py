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

"""Constants shared across the harness runtime."""

from __future__ import annotations

# -- Polling --
POLL_INTERVAL_SECONDS = 0.1
POLL_TIMEOUT_SECONDS = 10.0

# -- Command environment --
ENV_NAMESPACE = "NAMESPACE"
ENV_KUBECONFIG = "KUBECONFIG"
ENV_PATH = "PATH"
KUBECONFIG_FILENAME = "kubeconfig"
LOCAL_BIN_DIR = "bin"
SHELL_WRAPPER = ("sh", "-c")

# -- Namespaces --
NS_DEFAULT = "default"

# -- Kinds and groups --
CRD_GROUP = "apiextensions.k8s.io"
CRD_KIND = "CustomResourceDefinition"
HARNESS_GROUP = "kuttl.dev"
HARNESS_GROUP_DEPRECATED = "kudo.dev"
KIND_TEST_STEP = "TestStep"
KIND_TEST_ASSERT = "TestAssert"
KIND_TEST_SUITE = "TestSuite"

# -- Patch content types --
MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"

# -- API server status reasons --
REASON_NOT_FOUND = "NotFound"
REASON_ALREADY_EXISTS = "AlreadyExists"
REASON_CONFLICT = "Conflict"

# -- Marshalling --
REVISION_ANNOTATION = "deployment.kubernetes.io/revision"
SCRUBBED_METADATA_FIELDS = ("resourceVersion", "creationTimestamp", "selfLink", "uid", "generation")
MANIFEST_EXTENSIONS = (".yaml", ".yml", ".json")
DIFF_CONTEXT_LINES = 3

# -- Settings --
ENV_PREFIX = "KUBE_HARNESS_"
DEFAULT_COMMAND_TIMEOUT = 0
