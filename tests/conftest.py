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

"""Shared fixtures: an in-memory Prism client and entity builders."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from pv_teardown.client import ApiResponse, PrismClient
from pv_teardown.config import PrismSettings, RunContext, TuningConfig
from pv_teardown.constants import V3_VMS_LIST, V3_VOLUME_GROUPS_LIST

NO_ROUTE = ApiResponse(status=None, body="", transport_error="no route")


def json_response(data: Any, status: int = 200) -> ApiResponse:
    return ApiResponse(status=status, body=json.dumps(data))


def empty_response(status: int = 202) -> ApiResponse:
    return ApiResponse(status=status, body="")


class FakePrismClient(PrismClient):
    """PrismClient that answers from a route table and records every call.

    Routes map ``(method, path)`` to an ApiResponse or a list of them; a list
    is consumed in order and its last entry repeats.
    """

    def __init__(self, base_url: str = "https://pc.example:9440") -> None:
        super().__init__(base_url, "admin", "secret", timeout=5)
        self.routes: dict[tuple[str, str], ApiResponse | list[ApiResponse]] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.clusters: dict[str, FakePrismClient] = {}

    def route(self, method: str, path: str, *responses: ApiResponse) -> FakePrismClient:
        self.routes[(method, path)] = list(responses) if len(responses) > 1 else responses[0]
        return self

    def call(self, method: str, path: str, body: Any = None) -> ApiResponse:
        self.calls.append((method, path, body))
        answer = self.routes.get((method, path), NO_ROUTE)
        if isinstance(answer, list):
            return answer.pop(0) if len(answer) > 1 else answer[0]
        return answer

    def for_cluster(self, address: str) -> FakePrismClient:
        return self.clusters.setdefault(address, FakePrismClient(f"https://{address}:9440"))

    def paths(self, method: str | None = None) -> list[str]:
        return [path for m, path, _ in self.calls if method is None or m == method]


def vm_entity(
    uuid: str,
    name: str,
    *,
    power_state: str = "OFF",
    cluster: str | None = None,
    tag_location: tuple[str, str] = ("metadata", "KubernetesClusterName"),
    vg_ids: Sequence[str] = (),
    cluster_id: str | None = None,
    num_sockets: int = 2,
    memory_mib: int = 4096,
) -> dict[str, Any]:
    disks = [
        {"device_properties": {"device_type": "DISK"}, "uuid": f"{uuid}-boot"},
        *(
            {"device_properties": {"device_type": "VOLUME_GROUP"}, "volume_group_reference": {"kind": "volume_group", "uuid": vg}}
            for vg in vg_ids
        ),
    ]
    entity: dict[str, Any] = {
        "metadata": {"uuid": uuid, "kind": "vm", "spec_version": 3, "categories": {}},
        "spec": {
            "name": name,
            "categories": {},
            "resources": {"disk_list": disks, "num_sockets": num_sockets, "memory_size_mib": memory_mib},
        },
        "status": {"name": name, "resources": {"power_state": power_state}},
    }
    if cluster is not None:
        section, key = tag_location
        entity[section]["categories"][key] = cluster
    if cluster_id is not None:
        entity["spec"]["cluster_reference"] = {"kind": "cluster", "uuid": cluster_id}
    return entity


def vg_entity(uuid: str, name: str, attached: Sequence[str] = ()) -> dict[str, Any]:
    return {
        "metadata": {"uuid": uuid, "kind": "volume_group"},
        "spec": {"name": name},
        "status": {
            "name": name,
            "resources": {"attachment_list": [{"vm_reference": {"kind": "vm", "uuid": vm}} for vm in attached]},
        },
    }


def list_response(entities: list[dict[str, Any]], total: int | None = None) -> ApiResponse:
    total = len(entities) if total is None else total
    return json_response({"metadata": {"total_matches": total, "length": len(entities)}, "entities": entities})


@pytest.fixture
def client() -> FakePrismClient:
    return FakePrismClient()


@pytest.fixture
def scenario_client(client: FakePrismClient) -> FakePrismClient:
    """mgmt-cluster with one powered-off controller holding one PVC."""
    client.route("POST", V3_VMS_LIST, list_response([
        vm_entity("vm-ctrl-0", "ctrl-0", cluster="mgmt-cluster", vg_ids=["vg-abc"]),
        vm_entity("vm-other", "other-0", cluster="other-cluster", vg_ids=["vg-other"]),
    ]))
    client.route("POST", V3_VOLUME_GROUPS_LIST, list_response([
        vg_entity("vg-abc", "pvc-abc123", attached=["vm-ctrl-0"]),
        vg_entity("vg-other", "pvc-other", attached=["vm-other"]),
    ]))
    return client


def make_ctx(tmp_path: Path | None = None, **overrides: Any) -> RunContext:
    tuning_fields = {k: overrides.pop(k) for k in list(overrides) if k in TuningConfig.model_fields}
    prism = PrismSettings(endpoint="pc.example", user="admin", password="secret", _env_file=None)
    tuning = TuningConfig(_env_file=None, **tuning_fields)
    values: dict[str, Any] = {"cluster_name": "mgmt-cluster", "assume_yes": True}
    if tmp_path is not None:
        values["worklist_path"] = tmp_path / "volumes.list.tmp"
    values.update(overrides)
    return RunContext(prism=prism, tuning=tuning, base_url="https://pc.example:9440", **values)


@pytest.fixture
def no_sleep() -> list[float]:
    """Sleep replacement that records requested delays."""
    return []
