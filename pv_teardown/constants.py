# /*
# Copyright 2026 The pv-teardown Authors.
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

"""API paths, category keys, naming conventions, and tunable defaults."""

from __future__ import annotations

# -- Prism Central connection --
DEFAULT_PRISM_PORT = 9440
DEFAULT_ENV_FILE = "env.vars"
REQUEST_ID_HEADER = "NTNX-Request-Id"

# -- v3 (primary generation) --
V3_VMS_LIST = "/api/nutanix/v3/vms/list"
V3_VM = "/api/nutanix/v3/vms/{vm_id}"
V3_CLUSTER = "/api/nutanix/v3/clusters/{cluster_id}"
V3_VOLUME_GROUPS_LIST = "/api/nutanix/v3/volume_groups/list"
V3_VOLUME_GROUP = "/api/nutanix/v3/volume_groups/{vg_id}"
V3_VOLUME_GROUP_DETACH = "/api/nutanix/v3/volume_groups/{vg_id}/detach"
V3_VM_UPDATE_API_VERSION = "3.1"

# -- Volumes v4.1 (newer generation) --
V4_VOLUME_GROUP = "/api/volumes/v4.1/config/volume-groups/{vg_id}"
V4_VOLUME_GROUP_DETACH_VM = "/api/volumes/v4.1/config/volume-groups/{vg_id}/$actions/detach-vm"
V4_VM_ATTACHMENT_TYPE = "volumes.v4.config.VmAttachment"
V4_FORMAT_VERSION = "v4.r1"

# -- Prism Element v2.0 (per-cluster, legacy generation) --
PE_VOLUME_GROUP_DETACH = "/PrismGateway/services/rest/v2.0/volume_groups/{vg_id}/detach"

# -- Listing --
DEFAULT_PAGE_SIZE = 500

# -- Inventory conventions --
# Tag locations in priority order: (section, category key).
CLUSTER_TAG_LOCATIONS: tuple[tuple[str, str], ...] = (
    ("metadata", "KubernetesClusterName"),
    ("metadata", "kubernetes_cluster_name"),
    ("spec", "KubernetesClusterName"),
    ("spec", "kubernetes_cluster_name"),
)
# Heuristic for "this volume group backs a Kubernetes PVC"; VGs renamed by hand are missed.
PVC_NAME_PREFIX = "pvc-"
VOLUME_GROUP_DEVICE_TYPE = "VOLUME_GROUP"
WORKER_NODE_MARKER = "-md-"

POWER_STATE_OFF = "OFF"
TASK_SUCCESS_STATES = ("COMPLETE", "SUCCEEDED")

# Field paths tried in order when resolving a cluster's management address.
CLUSTER_ADDRESS_PATHS: tuple[tuple[str | int, ...], ...] = (
    ("status", "resources", "network", "external_ip"),
    ("spec", "resources", "network", "external_ip"),
    ("status", "resources", "config", "external_data_services_config", "management_server_list", 0, "value"),
    ("spec", "resources", "config", "management_server_list", 0, "value"),
    ("spec", "resources", "network", "ip_list", 0),
    ("status", "resources", "network", "ip_list", 0),
)

# -- Deletion --
TRANSIENT_ERROR_PATTERN = r"RPC request|timeout|connection|temporarily|unavailable"
DELETE_RETRY_DELAYS: tuple[int, ...] = (2, 5, 10)

# -- Tunable defaults (overridable via environment) --
DEFAULT_CURL_TIMEOUT = 90
DEFAULT_DELETE_RETRIES = 3
DEFAULT_DELAY_BETWEEN_VGS = 3
DEFAULT_DETACH_WAIT_SECONDS = 30

# -- Work-list --
DEFAULT_WORKLIST_PATH = "volumes.list.tmp"

# -- Output --
CONFIRM_TOKEN = "yes"
DEBUG_BODY_LIMIT = 1200
