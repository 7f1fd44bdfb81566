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

"""Volume group detachment across Prism API generations.

Prism has shipped several incompatible ways to detach a volume group from a
VM, and a given Prism Central may answer only some of them. ``DetachChain``
tries an ordered list of ``DetachStrategy`` objects against a (volume group,
VM) pair and stops at the first one that reports success:

1. v3 detach with a single ``vm_reference``
2. v3 detach with a ``vm_reference_list``
3. volumes v4.1 ``$actions/detach-vm``
4. Prism Element v2.0 detach on the VM's own cluster
5. removing the volume group disk from the VM spec (powered-off VMs only)
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from rich.markup import escape

from pv_teardown import console, logger
from pv_teardown.client import ApiResponse, PrismClient
from pv_teardown.constants import (
    CLUSTER_ADDRESS_PATHS,
    PE_VOLUME_GROUP_DETACH,
    POWER_STATE_OFF,
    TASK_SUCCESS_STATES,
    V3_VM_UPDATE_API_VERSION,
    V3_VOLUME_GROUP_DETACH,
    V4_FORMAT_VERSION,
    V4_VM_ATTACHMENT_TYPE,
    V4_VOLUME_GROUP_DETACH_VM,
)
from pv_teardown.models import VirtualMachine
from pv_teardown.utils import dig, first_present, truncate

NO_DETACH_METHOD = "no detach method succeeded"


def v3_error(data: dict[str, Any] | None) -> str | None:
    """Error text of a v3 response (``message_list[0].message``, then ``message``)."""
    return first_present(data, ("message_list", 0, "message"), ("message",))


def task_succeeded(data: dict[str, Any] | None) -> bool:
    """True when a v3 response reports a COMPLETE/SUCCEEDED task state."""
    return dig(data, "status", "state") in TASK_SUCCESS_STATES


# ============================================================================
# Outcomes and context
# ============================================================================

@dataclass(frozen=True)
class DetachOutcome:
    """Result of one strategy attempt.

    Attributes:
        label: Human-readable strategy name.
        succeeded: Whether the strategy reported a definitive success.
        error: API error text worth surfacing, or None.
        note: Extra detail for the operator (e.g. why a strategy was skipped).
        response: Raw response of the detach call, if one was made.
    """

    label: str
    succeeded: bool
    error: str | None = None
    note: str | None = None
    response: ApiResponse | None = None


@dataclass
class DetachResult:
    """Result of the whole chain for a (volume group, VM) pair."""

    succeeded: bool
    strategy: str | None = None
    error: str | None = None
    attempts: list[DetachOutcome] = field(default_factory=list)


class DetachContext:
    """Inputs shared by every strategy for one (volume group, VM) pair.

    The VM document is fetched at most once and only if a strategy needs it.
    """

    def __init__(self, client: PrismClient, volume_group_id: str, vm_id: str) -> None:
        self.client = client
        self.volume_group_id = volume_group_id
        self.vm_id = vm_id

    @cached_property
    def vm_document(self) -> dict[str, Any] | None:
        return self.client.get_vm(self.vm_id).json()


# ============================================================================
# Strategies
# ============================================================================

class DetachStrategy(ABC):
    """One way of detaching a volume group from a VM."""

    label: str = ""
    # Whether this strategy's API error competes for the message shown on total failure.
    surfaces_error: bool = True

    @abstractmethod
    def attempt(self, ctx: DetachContext) -> DetachOutcome:
        ...


class _V3Detach(DetachStrategy):

    @abstractmethod
    def payload(self, vm_id: str) -> dict[str, Any]:
        ...

    def attempt(self, ctx: DetachContext) -> DetachOutcome:
        resp = ctx.client.call(
            "POST", V3_VOLUME_GROUP_DETACH.format(vg_id=ctx.volume_group_id), self.payload(ctx.vm_id),
        )
        data = resp.json()
        if task_succeeded(data):
            return DetachOutcome(self.label, True, response=resp)
        return DetachOutcome(self.label, False, error=v3_error(data), response=resp)


class V3ReferenceDetach(_V3Detach):
    label = "v3 API"

    def payload(self, vm_id: str) -> dict[str, Any]:
        return {"vm_reference": {"kind": "vm", "uuid": vm_id}}


class V3ReferenceListDetach(_V3Detach):
    label = "v3 API, list body"

    def payload(self, vm_id: str) -> dict[str, Any]:
        return {"vm_reference_list": [{"kind": "vm", "uuid": vm_id}]}


class V4DetachVm(DetachStrategy):
    label = "volumes v4.1 detach-vm"

    @staticmethod
    def has_error_shape(resp: ApiResponse, data: dict[str, Any] | None) -> bool:
        if not resp.responded or (resp.status or 0) >= 400:
            return True
        if data is None:
            return not resp.is_empty
        return bool(data.get("error") or data.get("message_list") or data.get("status") in (400, 404))

    def attempt(self, ctx: DetachContext) -> DetachOutcome:
        body = {
            "extId": ctx.vm_id,
            "$objectType": V4_VM_ATTACHMENT_TYPE,
            "$reserved": {"$fv": V4_FORMAT_VERSION},
            "$unknownFields": {},
        }
        resp = ctx.client.call("POST", V4_VOLUME_GROUP_DETACH_VM.format(vg_id=ctx.volume_group_id), body)
        data = resp.json()
        if self.has_error_shape(resp, data):
            return DetachOutcome(self.label, False, error=dig(data, "message"), response=resp)
        if data is not None and data.get("data"):
            return DetachOutcome(self.label, True, response=resp)
        return DetachOutcome(f"{self.label}, accepted", True, response=resp)


class ClusterV2Detach(DetachStrategy):
    label = "Prism Element v2.0 volume_groups/detach"

    @staticmethod
    def resolve_address(client: PrismClient, cluster_id: str) -> str | None:
        """Management address of a cluster, trying known fields in priority order."""
        value = first_present(client.get_cluster(cluster_id).json(), *CLUSTER_ADDRESS_PATHS)
        return str(value) if value else None

    def attempt(self, ctx: DetachContext) -> DetachOutcome:
        doc = ctx.vm_document
        cluster_id = VirtualMachine.from_api(doc).cluster_id if doc else None
        if not cluster_id:
            return DetachOutcome(self.label, False, note="VM has no cluster reference")
        address = self.resolve_address(ctx.client, cluster_id)
        if not address:
            return DetachOutcome(self.label, False, note=f"no management address for cluster {cluster_id}")

        body = {
            "operation": "DETACH",
            "vm_uuid": ctx.vm_id,
            "index": 0,
            "logical_timestamp": 0,
            "vm_logical_timestamp": 0,
        }
        resp = ctx.client.for_cluster(address).call(
            "POST", PE_VOLUME_GROUP_DETACH.format(vg_id=ctx.volume_group_id), body,
        )
        data = resp.json()
        error = first_present(data, ("message",), ("error",))
        if data is not None and (data.get("message") or data.get("error_code")):
            return DetachOutcome(self.label, False, error=error, response=resp)
        if (resp.responded and resp.is_empty) or (data is not None and (data.get("value") or data.get("task_uuid"))):
            return DetachOutcome(self.label, True, response=resp)
        return DetachOutcome(self.label, False, error=error, response=resp)


class VmDiskListEdit(DetachStrategy):
    label = "VM update fallback"
    surfaces_error = False

    @staticmethod
    def build_update(doc: dict[str, Any], volume_group_id: str) -> dict[str, Any]:
        """VM update body with the volume group's disks removed; metadata is mandatory."""
        spec = copy.deepcopy(doc["spec"])
        resources = spec.setdefault("resources", {})
        resources["disk_list"] = [
            disk for disk in resources.get("disk_list") or []
            if dig(disk, "volume_group_reference", "uuid", default="") != volume_group_id
        ]
        return {"metadata": doc["metadata"], "spec": spec, "api_version": V3_VM_UPDATE_API_VERSION}

    def attempt(self, ctx: DetachContext) -> DetachOutcome:
        doc = ctx.vm_document
        if not doc or not isinstance(doc.get("spec"), dict) or not doc.get("metadata"):
            return DetachOutcome(self.label, False, note=f"could not fetch VM {ctx.vm_id}")
        power_state = first_present(
            doc, ("status", "resources", "power_state"), ("spec", "resources", "power_state"),
        ) or "UNKNOWN"
        if power_state != POWER_STATE_OFF:
            return DetachOutcome(
                self.label, False,
                note=f"fallback skipped: VM {ctx.vm_id} is {power_state} (must be OFF to modify disk_list)",
            )

        resp = ctx.client.update_vm(ctx.vm_id, self.build_update(doc, ctx.volume_group_id))
        data = resp.json()
        if dig(data, "metadata", "uuid"):
            return DetachOutcome(self.label, True, response=resp)
        error = v3_error(data) or (truncate(resp.body, 200) if not resp.is_empty else None)
        return DetachOutcome(
            self.label, False, error=error, note=f"VM update failed: {error or 'empty response'}", response=resp,
        )


DEFAULT_STRATEGIES: tuple[DetachStrategy, ...] = (
    V3ReferenceDetach(),
    V3ReferenceListDetach(),
    V4DetachVm(),
    ClusterV2Detach(),
    VmDiskListEdit(),
)


# ============================================================================
# Chain
# ============================================================================

class DetachChain:
    """Tries each strategy in order until one detaches the volume group."""

    def __init__(self, client: PrismClient, strategies: Sequence[DetachStrategy] = DEFAULT_STRATEGIES) -> None:
        self.client = client
        self.strategies = tuple(strategies)

    def detach(self, volume_group_id: str, vm_id: str) -> DetachResult:
        """Detach *volume_group_id* from *vm_id*.

        Args:
            volume_group_id: Volume group uuid.
            vm_id: Attached VM uuid.

        Returns:
            DetachResult naming the strategy that worked, or the most relevant
            API error when none did.
        """
        ctx = DetachContext(self.client, volume_group_id, vm_id)
        attempts: list[DetachOutcome] = []
        for strategy in self.strategies:
            outcome = strategy.attempt(ctx)
            attempts.append(outcome)
            logger.debug(
                "detach %s from %s via %s: succeeded=%s error=%s",
                volume_group_id, vm_id, outcome.label, outcome.succeeded, outcome.error,
            )
            if outcome.succeeded:
                return DetachResult(True, strategy=outcome.label, attempts=attempts)
            if outcome.note and isinstance(strategy, VmDiskListEdit):
                console.print(f"[yellow]    ⚠️  {escape(outcome.note)}[/yellow]")

        surfaced = [
            (outcome.label, outcome.error)
            for strategy, outcome in zip(self.strategies, attempts)
            if strategy.surfaces_error and outcome.error
        ]
        if surfaced:
            label, error = surfaced[0]
            return DetachResult(False, strategy=label, error=error, attempts=attempts)
        return DetachResult(False, error=NO_DETACH_METHOD, attempts=attempts)
