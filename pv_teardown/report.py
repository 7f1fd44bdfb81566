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

"""Inventory report of Kubernetes-tagged VMs, grouped by cluster, with their PVC attachments."""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.panel import Panel
from rich.tree import Tree

from pv_teardown import console, logger
from pv_teardown.client import PrismClient
from pv_teardown.constants import WORKER_NODE_MARKER
from pv_teardown.inventory import Inventory
from pv_teardown.models import VirtualMachine


@dataclass(frozen=True)
class NodeReport:
    """One VM line of the report."""

    name: str
    uuid: str
    vcpu: int
    memory_gib: float
    pvc_names: tuple[str, ...] = ()

    @property
    def is_worker(self) -> bool:
        return WORKER_NODE_MARKER in self.name


@dataclass
class ClusterReport:
    """Kubernetes-tagged VMs keyed by cluster tag."""

    clusters: dict[str, list[NodeReport]] = field(default_factory=dict)

    @property
    def nodes(self) -> list[NodeReport]:
        return [node for nodes in self.clusters.values() for node in nodes]

    @property
    def controller_count(self) -> int:
        return sum(1 for node in self.nodes if not node.is_worker)

    @property
    def worker_count(self) -> int:
        return sum(1 for node in self.nodes if node.is_worker)

    @property
    def pvc_count(self) -> int:
        return sum(len(node.pvc_names) for node in self.nodes)


def build_report(client: PrismClient, inventory: Inventory | None = None) -> ClusterReport:
    """Group tagged VMs by cluster and resolve their attached PVC volume groups.

    Args:
        client: Prism Central client.
        inventory: Inventory resolver, or None to build one on *client*.

    Returns:
        ClusterReport with clusters and VMs sorted by name.

    Raises:
        InventoryError: If a list API response is unusable.
    """
    inventory = inventory or Inventory(client)
    tagged: list[VirtualMachine] = [vm for vm in inventory.list_vms() if vm.cluster_tag]
    report = ClusterReport()
    if not tagged:
        return report

    volume_groups = inventory.volume_group_index()
    for vm in sorted(tagged, key=lambda v: (v.cluster_tag, v.name)):
        pvc_names = sorted(
            volume_groups[vg_id].name
            for vg_id in vm.volume_group_ids()
            if vg_id in volume_groups and volume_groups[vg_id].is_persistent_volume
        )
        node = NodeReport(
            name=vm.name,
            uuid=vm.uuid,
            vcpu=vm.num_sockets,
            memory_gib=round(vm.memory_mib / 1024, 2),
            pvc_names=tuple(pvc_names),
        )
        report.clusters.setdefault(vm.cluster_tag, []).append(node)
    logger.debug("Report covers %d VM(s) in %d cluster(s)", len(tagged), len(report.clusters))
    return report


def _add_nodes(branch: Tree, nodes: list[NodeReport]) -> None:
    if not nodes:
        branch.add("[dim](none found)[/dim]")
        return
    for node in nodes:
        leaf = branch.add(f"{node.name} (vCPU: {node.vcpu} | Memory: {node.memory_gib:.2f} GB)")
        for pvc_name in node.pvc_names:
            leaf.add(f"[cyan]{pvc_name}[/cyan]")


def render_report(report: ClusterReport) -> None:
    """Print one tree per cluster followed by totals."""
    if not report.clusters:
        console.print("[yellow]ℹ️  No VMs with Kubernetes cluster names found.[/yellow]")
        return

    console.print(Panel.fit("Kubernetes clusters", style="bold blue"))
    for cluster_name, nodes in report.clusters.items():
        tree = Tree(f"[bold]{cluster_name}[/bold]")
        _add_nodes(tree.add("Controller Nodes"), [n for n in nodes if not n.is_worker])
        _add_nodes(tree.add("Worker Nodes"), [n for n in nodes if n.is_worker])
        console.print(tree)

    console.print("=" * 42)
    console.print("Summary:")
    console.print(f"  Clusters: {len(report.clusters)}")
    console.print(f"  Total VMs: {len(report.nodes)}")
    console.print(f"  Controller nodes: {report.controller_count}")
    console.print(f"  Worker nodes: {report.worker_count}")
    console.print(f"  PVCs attached to these VMs: {report.pvc_count}")
    console.print("=" * 42)
