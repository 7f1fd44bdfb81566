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

"""Discovery of persistent-volume volume groups attached to powered-off cluster VMs."""

from __future__ import annotations

from pathlib import Path

from pv_teardown import logger
from pv_teardown.client import ApiResponse, PrismClient
from pv_teardown.constants import DEFAULT_PAGE_SIZE
from pv_teardown.models import AttachmentTarget, PowerState, VirtualMachine, VolumeGroup
from pv_teardown.utils import dig
from pv_teardown.worklist import read_worklist


class InventoryError(RuntimeError):
    """Raised when a list API returns something that cannot be used for discovery."""


class NothingToDo(Exception):
    """Discovery found nothing to act on; informational, not a failure.

    Attributes:
        reasons: Likely explanations to show the operator.
    """

    def __init__(self, message: str, reasons: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.reasons = reasons


def _entities(resp: ApiResponse, what: str, page_size: int) -> list[dict]:
    """Extract ``entities`` from a v3 list response."""
    data = resp.json()
    if data is None:
        detail = resp.transport_error or (resp.body[:200] if resp.body else "empty response")
        raise InventoryError(f"Invalid response from {what} list API: {detail}")
    total = dig(data, "metadata", "total_matches", default=0)
    if isinstance(total, int) and total > page_size:
        logger.warning(
            "%d %s exist but only the first %d are listed (no pagination)", total, what, page_size,
        )
    entities = data.get("entities") or []
    return [e for e in entities if isinstance(e, dict)]


class Inventory:
    """Lists VMs and volume groups and resolves them into attachment targets."""

    def __init__(self, client: PrismClient, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.client = client
        self.page_size = page_size
        self._volume_groups: dict[str, VolumeGroup] | None = None

    def list_vms(self) -> list[VirtualMachine]:
        entities = _entities(self.client.list_vms(self.page_size), "VM", self.page_size)
        return [vm for vm in map(VirtualMachine.from_api, entities) if vm.uuid]

    def volume_group_index(self, refresh: bool = False) -> dict[str, VolumeGroup]:
        """Volume groups keyed by uuid, fetched once and cached unless *refresh*."""
        if self._volume_groups is None or refresh:
            entities = _entities(
                self.client.list_volume_groups(self.page_size), "volume group", self.page_size,
            )
            index: dict[str, VolumeGroup] = {}
            for vg in map(VolumeGroup.from_api, entities):
                if vg.uuid:
                    index.setdefault(vg.uuid, vg)
            self._volume_groups = index
        return self._volume_groups

    def powered_off_vms(self, cluster_name: str) -> list[VirtualMachine]:
        """Powered-off VMs tagged with *cluster_name* at any known tag location."""
        return [
            vm for vm in self.list_vms()
            if vm.power_state is PowerState.OFF and vm.in_cluster(cluster_name)
        ]

    def discover(self, cluster_name: str) -> list[AttachmentTarget]:
        """Find PVC volume groups attached to powered-off VMs of a cluster.

        Args:
            cluster_name: Kubernetes cluster tag value.

        Returns:
            Targets in discovery order, one per volume group.

        Raises:
            NothingToDo: If no VM or no volume group matched.
            InventoryError: If a list API response is unusable.
        """
        vms = self.powered_off_vms(cluster_name)
        if not vms:
            raise NothingToDo(f"No powered-off VMs found in cluster '{cluster_name}'.")
        logger.info("Found %d powered-off VM(s) in cluster '%s'", len(vms), cluster_name)

        volume_groups = self.volume_group_index()
        targets: dict[str, AttachmentTarget] = {}
        for vm in vms:
            for vg_id in vm.volume_group_ids():
                vg = volume_groups.get(vg_id)
                if vg is None or not vg.is_persistent_volume or vg_id in targets:
                    continue
                targets[vg_id] = AttachmentTarget(
                    uuid=vg.uuid, name=vg.name, attached_vm=vm.uuid, attached_vm_name=vm.name,
                )

        if not targets:
            raise NothingToDo(
                f"No volume groups found attached to powered-off VMs in cluster '{cluster_name}'.",
                reasons=(
                    f"PVCs are attached to VMs in a different cluster (not '{cluster_name}')",
                    "PVCs are attached to VMs that are powered ON",
                    "the VMs carry a different KubernetesClusterName tag value",
                    "no PVCs exist for this cluster",
                ),
            )
        return list(targets.values())

    def load_from_file(self, path: Path) -> list[AttachmentTarget]:
        """Load targets from a work-list; raises WorkListError if it holds none."""
        return read_worklist(path)
