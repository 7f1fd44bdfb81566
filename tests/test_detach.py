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

from __future__ import annotations

import pytest

from pv_teardown.client import ApiResponse
from pv_teardown.constants import (
    PE_VOLUME_GROUP_DETACH,
    V3_CLUSTER,
    V3_VM,
    V3_VOLUME_GROUP_DETACH,
    V4_VOLUME_GROUP_DETACH_VM,
)
from pv_teardown.detach import (
    NO_DETACH_METHOD,
    ClusterV2Detach,
    DetachChain,
    DetachContext,
    V4DetachVm,
    VmDiskListEdit,
)
from tests.conftest import NO_ROUTE, FakePrismClient, empty_response, json_response, vm_entity

VG, VM = "vg-1", "vm-1"
V3_PATH = V3_VOLUME_GROUP_DETACH.format(vg_id=VG)
V4_PATH = V4_VOLUME_GROUP_DETACH_VM.format(vg_id=VG)
VM_PATH = V3_VM.format(vm_id=VM)
PE_PATH = PE_VOLUME_GROUP_DETACH.format(vg_id=VG)


def v3_failure(message: str = "v3 detach not supported") -> ApiResponse:
    return json_response({"state": "ERROR", "message_list": [{"message": message}]}, status=422)


def vm_document(power_state: str = "OFF", cluster_id: str | None = "cluster-1") -> dict:
    return vm_entity(VM, "ctrl-0", power_state=power_state, cluster="c1", vg_ids=[VG, "vg-keep"], cluster_id=cluster_id)


# ============================================================================
# Chain ordering
# ============================================================================

def test_first_v3_success_stops_the_chain(client: FakePrismClient) -> None:
    client.route("POST", V3_PATH, json_response({"status": {"state": "COMPLETE"}}))
    result = DetachChain(client).detach(VG, VM)
    assert result.succeeded
    assert result.strategy == "v3 API"
    assert client.calls == [("POST", V3_PATH, {"vm_reference": {"kind": "vm", "uuid": VM}})]


def test_strategies_run_in_order_until_v4_succeeds(client: FakePrismClient) -> None:
    client.route("POST", V3_PATH, v3_failure())
    client.route("POST", V4_PATH, json_response({"data": {"extId": "task-1"}}))

    result = DetachChain(client).detach(VG, VM)

    assert result.succeeded
    assert result.strategy == "volumes v4.1 detach-vm"
    assert [c[1] for c in client.calls] == [V3_PATH, V3_PATH, V4_PATH]
    assert client.calls[1][2] == {"vm_reference_list": [{"kind": "vm", "uuid": VM}]}
    assert client.calls[2][2] == {
        "extId": VM,
        "$objectType": "volumes.v4.config.VmAttachment",
        "$reserved": {"$fv": "v4.r1"},
        "$unknownFields": {},
    }
    assert [a.label for a in result.attempts] == ["v3 API", "v3 API, list body", "volumes v4.1 detach-vm"]


def test_total_failure_surfaces_first_v3_error_and_fetches_vm_once(client: FakePrismClient) -> None:
    client.route("POST", V3_PATH, v3_failure("Volume group is in use"))
    client.route("POST", V4_PATH, json_response({"message": "v4 failed"}, status=400))
    client.route("GET", VM_PATH, json_response(vm_document(cluster_id=None)))
    client.route("PUT", VM_PATH, json_response({"message_list": [{"message": "disallowed"}]}, status=422))

    result = DetachChain(client).detach(VG, VM)

    assert not result.succeeded
    assert result.error == "Volume group is in use"
    assert client.paths("GET") == [VM_PATH]
    assert len(result.attempts) == 5


def test_v4_error_surfaces_when_v3_is_silent(client: FakePrismClient) -> None:
    client.route("POST", V4_PATH, json_response({"message": "VM is not attached"}, status=404))
    result = DetachChain(client).detach(VG, VM)
    assert result.error == "VM is not attached"
    assert result.strategy == "volumes v4.1 detach-vm"


def test_vm_update_error_never_surfaces(client: FakePrismClient) -> None:
    client.route("GET", VM_PATH, json_response(vm_document(cluster_id=None)))
    client.route("PUT", VM_PATH, json_response({"message_list": [{"message": "disallowed"}]}, status=422))
    result = DetachChain(client).detach(VG, VM)
    assert not result.succeeded
    assert result.error == NO_DETACH_METHOD


# ============================================================================
# volumes v4.1 inference
# ============================================================================

@pytest.mark.parametrize(
    ("response", "succeeded", "label"),
    [
        (json_response({"data": {"extId": "t"}}), True, "volumes v4.1 detach-vm"),
        (json_response({"metadata": {}}), True, "volumes v4.1 detach-vm, accepted"),
        (empty_response(202), True, "volumes v4.1 detach-vm, accepted"),
        (NO_ROUTE, False, "volumes v4.1 detach-vm"),
        (json_response({"error": [{"code": "X"}], "message": "bad"}), False, "volumes v4.1 detach-vm"),
        (json_response({"status": 404, "message": "nf"}), False, "volumes v4.1 detach-vm"),
        (json_response({"message_list": [{"message": "m"}]}), False, "volumes v4.1 detach-vm"),
        (ApiResponse(500, ""), False, "volumes v4.1 detach-vm"),
        (ApiResponse(200, "<html>gateway</html>"), False, "volumes v4.1 detach-vm"),
    ],
)
def test_v4_success_inference(client: FakePrismClient, response: ApiResponse, succeeded: bool, label: str) -> None:
    client.route("POST", V4_PATH, response)
    outcome = V4DetachVm().attempt(DetachContext(client, VG, VM))
    assert outcome.succeeded is succeeded
    assert outcome.label == label


# ============================================================================
# Prism Element v2.0
# ============================================================================

def test_cluster_address_priority(client: FakePrismClient) -> None:
    cluster = {
        "spec": {"resources": {"network": {"external_ip": "10.0.0.2", "ip_list": ["10.0.0.5"]}}},
        "status": {"resources": {"network": {"external_ip": "10.0.0.1"}}},
    }
    client.route("GET", V3_CLUSTER.format(cluster_id="c"), json_response(cluster))
    assert ClusterV2Detach.resolve_address(client, "c") == "10.0.0.1"

    del cluster["status"]
    cluster["spec"]["resources"]["network"].pop("external_ip")
    cluster["spec"]["resources"]["config"] = {"management_server_list": [{"value": "10.0.0.4"}]}
    client.route("GET", V3_CLUSTER.format(cluster_id="c"), json_response(cluster))
    assert ClusterV2Detach.resolve_address(client, "c") == "10.0.0.4"

    cluster["spec"]["resources"].pop("config")
    client.route("GET", V3_CLUSTER.format(cluster_id="c"), json_response(cluster))
    assert ClusterV2Detach.resolve_address(client, "c") == "10.0.0.5"


def test_element_detach_posts_to_cluster_endpoint(client: FakePrismClient) -> None:
    client.route("GET", VM_PATH, json_response(vm_document()))
    client.route("GET", V3_CLUSTER.format(cluster_id="cluster-1"),
                 json_response({"status": {"resources": {"network": {"external_ip": "10.0.0.9"}}}}))
    element = client.for_cluster("10.0.0.9")
    element.route("POST", PE_PATH, empty_response(200))

    outcome = ClusterV2Detach().attempt(DetachContext(client, VG, VM))

    assert outcome.succeeded
    assert element.calls == [("POST", PE_PATH, {
        "operation": "DETACH", "vm_uuid": VM, "index": 0, "logical_timestamp": 0, "vm_logical_timestamp": 0,
    })]


def test_element_detach_error_and_skip(client: FakePrismClient) -> None:
    client.route("GET", VM_PATH, json_response(vm_document()))
    client.route("GET", V3_CLUSTER.format(cluster_id="cluster-1"),
                 json_response({"status": {"resources": {"network": {"external_ip": "10.0.0.9"}}}}))
    client.for_cluster("10.0.0.9").route("POST", PE_PATH, json_response({"message": "pe says no", "error_code": 1}))
    outcome = ClusterV2Detach().attempt(DetachContext(client, VG, VM))
    assert not outcome.succeeded
    assert outcome.error == "pe says no"

    client.route("GET", VM_PATH, json_response(vm_document(cluster_id=None)))
    skipped = ClusterV2Detach().attempt(DetachContext(client, VG, VM))
    assert not skipped.succeeded
    assert skipped.error is None
    assert skipped.note


# ============================================================================
# VM disk_list edit
# ============================================================================

def test_build_update_keeps_metadata_and_other_disks() -> None:
    doc = vm_document()
    body = VmDiskListEdit.build_update(doc, VG)
    assert body["metadata"] == doc["metadata"]
    assert body["api_version"] == "3.1"
    remaining = [d.get("volume_group_reference", {}).get("uuid") for d in body["spec"]["resources"]["disk_list"]]
    assert remaining == [None, "vg-keep"]
    assert len(doc["spec"]["resources"]["disk_list"]) == 3


def test_disk_list_edit_requires_powered_off_vm(client: FakePrismClient) -> None:
    client.route("GET", VM_PATH, json_response(vm_document(power_state="ON")))
    outcome = VmDiskListEdit().attempt(DetachContext(client, VG, VM))
    assert not outcome.succeeded
    assert "must be OFF" in outcome.note
    assert client.paths("PUT") == []


def test_disk_list_edit_success(client: FakePrismClient) -> None:
    client.route("GET", VM_PATH, json_response(vm_document()))
    client.route("PUT", VM_PATH, json_response({"metadata": {"uuid": VM}, "status": {"state": "PENDING"}}, status=202))
    outcome = VmDiskListEdit().attempt(DetachContext(client, VG, VM))
    assert outcome.succeeded
    sent = client.calls[-1][2]
    assert set(sent) == {"metadata", "spec", "api_version"}
