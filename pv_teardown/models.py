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

"""Typed views of Prism v3 entities, decoded once at the API boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pv_teardown.constants import (
    CLUSTER_TAG_LOCATIONS,
    PVC_NAME_PREFIX,
    VOLUME_GROUP_DEVICE_TYPE,
)
from pv_teardown.utils import dig, first_present


class PowerState(str, Enum):
    ON = "ON"
    OFF = "OFF"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> PowerState:
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class DiskReference:
    """One entry of a VM's ``disk_list``."""

    device_type: str | None
    volume_group_id: str | None

    @property
    def is_volume_group(self) -> bool:
        return self.device_type == VOLUME_GROUP_DEVICE_TYPE and bool(self.volume_group_id)

    @classmethod
    def from_api(cls, disk: dict[str, Any]) -> DiskReference:
        return cls(
            device_type=dig(disk, "device_properties", "device_type"),
            volume_group_id=dig(disk, "volume_group_reference", "uuid"),
        )


@dataclass(frozen=True)
class VirtualMachine:
    """Read-only snapshot of a VM from the v3 list or get API.

    Attributes:
        uuid: Server-assigned VM identifier.
        name: Display name (``spec.name``, then ``status.name``).
        power_state: Reported power state.
        cluster_tags: Kubernetes cluster tag values in location priority order.
        disks: Disk references (spec list, else status list).
        cluster_id: Prism Element cluster reference, if any.
        num_sockets: Configured vCPU sockets.
        memory_mib: Configured memory in MiB.
    """

    uuid: str
    name: str
    power_state: PowerState
    cluster_tags: tuple[str | None, ...] = ()
    disks: tuple[DiskReference, ...] = ()
    cluster_id: str | None = None
    num_sockets: int = 0
    memory_mib: int = 0

    @property
    def cluster_tag(self) -> str | None:
        return next((tag for tag in self.cluster_tags if tag), None)

    def in_cluster(self, cluster_name: str) -> bool:
        """True when any tag location names *cluster_name*."""
        return any(tag == cluster_name for tag in self.cluster_tags)

    def volume_group_ids(self) -> list[str]:
        """Volume group ids referenced by VG-type disks, in disk order, deduplicated."""
        ids: list[str] = []
        for disk in self.disks:
            if disk.is_volume_group and disk.volume_group_id not in ids:
                ids.append(disk.volume_group_id)
        return ids

    @classmethod
    def from_api(cls, entity: dict[str, Any]) -> VirtualMachine:
        disk_list = dig(entity, "spec", "resources", "disk_list") or dig(
            entity, "status", "resources", "disk_list", default=[]
        )
        return cls(
            uuid=dig(entity, "metadata", "uuid", default=""),
            name=first_present(entity, ("spec", "name"), ("status", "name")) or "unknown",
            power_state=PowerState.parse(dig(entity, "status", "resources", "power_state")),
            cluster_tags=tuple(
                dig(entity, section, "categories", key) for section, key in CLUSTER_TAG_LOCATIONS
            ),
            disks=tuple(DiskReference.from_api(d) for d in disk_list if isinstance(d, dict)),
            cluster_id=first_present(
                entity, ("spec", "cluster_reference", "uuid"), ("metadata", "cluster_reference", "uuid"),
            ),
            num_sockets=int(dig(entity, "spec", "resources", "num_sockets", default=0)),
            memory_mib=int(dig(entity, "spec", "resources", "memory_size_mib", default=0)),
        )


@dataclass(frozen=True)
class VolumeGroup:
    """A volume group and its current VM attachments."""

    uuid: str
    name: str
    attached_vm_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_persistent_volume(self) -> bool:
        return self.name.startswith(PVC_NAME_PREFIX)

    @classmethod
    def from_api(cls, entity: dict[str, Any]) -> VolumeGroup:
        attachments = dig(entity, "status", "resources", "attachment_list", default=[])
        vm_ids = tuple(
            vm_id for vm_id in (dig(a, "vm_reference", "uuid") for a in attachments) if vm_id
        )
        return cls(
            uuid=dig(entity, "metadata", "uuid", default=""),
            name=first_present(entity, ("spec", "name"), ("status", "name")) or "",
            attached_vm_ids=vm_ids,
        )


@dataclass(frozen=True)
class AttachmentTarget:
    """Unit of work: a volume group and the VM it was discovered on."""

    uuid: str
    name: str
    attached_vm: str | None = None
    attached_vm_name: str | None = None

    @property
    def vm_label(self) -> str:
        return self.attached_vm_name or self.attached_vm or "-"

    def to_record(self) -> dict[str, Any]:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "attached_vm": self.attached_vm,
            "attached_vm_name": self.attached_vm_name,
        }

    @classmethod
    def from_record(cls, record: Any) -> AttachmentTarget | None:
        """Build a target from a work-list record; None if uuid or name is missing."""
        if not isinstance(record, dict):
            return None
        uuid, name = record.get("uuid"), record.get("name")
        if not isinstance(uuid, str) or not isinstance(name, str) or not uuid or not name:
            return None
        vm, vm_name = record.get("attached_vm"), record.get("attached_vm_name")
        return cls(
            uuid=uuid,
            name=name,
            attached_vm=vm if isinstance(vm, str) and vm else None,
            attached_vm_name=vm_name if isinstance(vm_name, str) and vm_name else None,
        )
