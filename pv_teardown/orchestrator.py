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

"""Orchestration functions that compose discovery, detach and delete into teardown runs."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import typer
from rich.markup import escape
from rich.panel import Panel

from pv_teardown import console, logger
from pv_teardown.client import PrismClient
from pv_teardown.config import RunContext
from pv_teardown.constants import CONFIRM_TOKEN, DELETE_RETRY_DELAYS
from pv_teardown.delete import VolumeGroupDeleter, delete_vm
from pv_teardown.detach import DetachChain
from pv_teardown.inventory import Inventory, NothingToDo
from pv_teardown.models import AttachmentTarget, VirtualMachine
from pv_teardown.worklist import WorkListError, write_worklist

Confirm = Callable[[str], bool]


def prompt_confirm(question: str) -> bool:
    """Ask a yes/no question; only an exact ``yes`` counts as consent."""
    answer = typer.prompt(f"{question} (yes/no)", default="", show_default=False)
    return answer.strip() == CONFIRM_TOKEN


@dataclass
class RunSummary:
    """Tally of one teardown run.

    Attributes:
        detached: Targets detached, or found with no attachments.
        deleted: Targets whose delete was accepted.
        failed: (target, reason) pairs for targets that failed.
        cancelled: Whether the operator declined the confirmation.
        nothing_to_do: Whether discovery found nothing to act on.
    """

    detached: list[AttachmentTarget] = field(default_factory=list)
    deleted: list[AttachmentTarget] = field(default_factory=list)
    failed: list[tuple[AttachmentTarget, str]] = field(default_factory=list)
    cancelled: bool = False
    nothing_to_do: bool = False

    def fail(self, target: AttachmentTarget, reason: str) -> None:
        self.failed.append((target, reason))

    def exit_code(self, fail_on_errors: bool = False) -> int:
        return 1 if fail_on_errors and self.failed else 0


# ============================================================================
# Helpers
# ============================================================================

def _report_nothing_to_do(exc: NothingToDo) -> None:
    console.print(f"[yellow]ℹ️  {exc}[/yellow]")
    if exc.reasons:
        console.print("  Possible reasons:")
        for number, reason in enumerate(exc.reasons, start=1):
            console.print(f"    {number}. {reason}")


def _print_targets(targets: Sequence[AttachmentTarget]) -> None:
    console.print(f"Found {len(targets)} volume group(s) to process:")
    for target in targets:
        console.print(f"  - {target.name} (UUID: {target.uuid}, VM: {target.vm_label})")


def _detach_target(
    chain: DetachChain,
    target: AttachmentTarget,
    attached_vm_ids: Sequence[str],
) -> tuple[bool, str | None]:
    """Detach every attached VM from one target.

    Returns:
        (all detached, first failure reason or None).
    """
    console.print(f"  Found {len(attached_vm_ids)} VM attachment(s)")
    first_error: str | None = None
    for vm_id in attached_vm_ids:
        result = chain.detach(target.uuid, vm_id)
        if result.succeeded:
            console.print(f"[green]    ✓ Detached VM: {vm_id} ({result.strategy})[/green]")
            continue
        where = f" ({result.strategy})" if result.strategy else ""
        console.print(f"[yellow]    ⚠️  Detach VM {vm_id}{where}: {escape(str(result.error))}[/yellow]")
        logger.warning("Detach of %s (%s) from VM %s failed: %s", target.name, target.uuid, vm_id, result.error)
        first_error = first_error or f"detach from VM {vm_id} failed: {result.error}"
    return first_error is None, first_error


def _print_storage_summary(ctx: RunContext, summary: RunSummary) -> None:
    console.print("=" * 42)
    if ctx.detach_only:
        console.print("Detach-only Summary:")
        console.print(f"  Detached (or had no attachments): {len(summary.detached)}")
        console.print(f"  Failed: {len(summary.failed)}")
        console.print("=" * 42)
        console.print("\nNext steps:")
        console.print(
            "  1. In Prism Central, confirm the volume groups show no VM attachments "
            "(or wait for detach tasks to complete)."
        )
        console.print("  2. Delete the volume groups using the written list:")
        console.print(f"       pv-teardown storage delete --volumes {ctx.worklist_path}")
        console.print("  3. Then delete the VMs:")
        console.print(f"       pv-teardown vms delete --cluster {ctx.cluster_label}")
    else:
        console.print("Deletion Summary:")
        console.print(f"  Successfully deleted: {len(summary.deleted)}")
        console.print(f"  Failed: {len(summary.failed)}")
        console.print("=" * 42)
        if summary.deleted and ctx.cluster_name:
            console.print(
                f"\nTo delete the VMs (after the volume groups are gone), run: "
                f"pv-teardown vms delete --cluster {ctx.cluster_name}"
            )
    for target, reason in summary.failed:
        console.print(f"[red]  ✗ {target.name} ({target.uuid}): {escape(reason)}[/red]")


# ============================================================================
# Public workflows
# ============================================================================

def run_storage_teardown(
    ctx: RunContext,
    client: PrismClient,
    *,
    confirm: Confirm = prompt_confirm,
    sleep: Callable[[float], None] = time.sleep,
    inventory: Inventory | None = None,
    chain: DetachChain | None = None,
    deleter: VolumeGroupDeleter | None = None,
) -> RunSummary:
    """Detach persistent-volume volume groups and, unless detach-only, delete them.

    Args:
        ctx: Resolved run context.
        client: Prism Central client.
        confirm: Confirmation gate; receives the question, returns consent.
        sleep: Sleep function for pacing and waits.
        inventory: Inventory resolver, or None to build one on *client*.
        chain: Detach strategy chain, or None for the default chain.
        deleter: Volume group deleter, or None to build one from *ctx*.

    Returns:
        RunSummary of the run. Per-target failures are recorded, not raised.

    Raises:
        WorkListError: If the volumes file holds no usable entries.
        InventoryError: If a list API response is unusable.
    """
    inventory = inventory or Inventory(client)
    chain = chain or DetachChain(client)
    deleter = deleter or VolumeGroupDeleter(
        client, retries=ctx.tuning.delete_retries, delays=DELETE_RETRY_DELAYS, sleep=sleep,
    )
    summary = RunSummary()

    # DISCOVER
    if ctx.from_file:
        console.print(f"Loading volume group list from: {ctx.volumes_file}")
        targets = inventory.load_from_file(ctx.volumes_file)
        console.print(f"  Loaded {len(targets)} volume group(s)")
        console.print("Fetching current volume group state from Prism Central (for attachment check)...")
        volume_groups = inventory.volume_group_index(refresh=True)
    else:
        console.print(Panel.fit(f"Discovering volume groups in cluster '{ctx.cluster_name}'", style="bold blue"))
        try:
            targets = inventory.discover(ctx.cluster_name)
        except NothingToDo as exc:
            _report_nothing_to_do(exc)
            summary.nothing_to_do = True
            return summary
        volume_groups = inventory.volume_group_index()

    # CONFIRM
    _print_targets(targets)
    action = "detach VMs from" if ctx.detach_only else "delete"
    if not ctx.assume_yes and not confirm(f"Do you want to {action} these {len(targets)} volume group(s)?"):
        console.print("Cancelled.")
        summary.cancelled = True
        return summary

    # DETACH, then DELETE per target
    title = "Detaching VMs from volume groups (no deletion)" if ctx.detach_only else "Detaching VMs and deleting volume groups"
    console.print(Panel.fit(title, style="bold blue"))
    for index, target in enumerate(targets):
        if index:
            sleep(ctx.tuning.delay_between_vgs)
        console.print(f"Processing: {target.name} (UUID: {target.uuid})...")

        vg = volume_groups.get(target.uuid)
        attached = vg.attached_vm_ids if vg else ()
        if attached:
            ok, reason = _detach_target(chain, target, attached)
            if not ok:
                summary.fail(target, reason)
                console.print("[red]  ✗ Skipping delete: volume group is still attached[/red]")
                continue
            summary.detached.append(target)
            if not ctx.detach_only:
                console.print(f"  Waiting {ctx.tuning.detach_wait_seconds} seconds for detach to complete...")
                sleep(ctx.tuning.detach_wait_seconds)
        else:
            console.print("  No attachments found (already detached), skipping detach step")
            summary.detached.append(target)

        if ctx.detach_only:
            continue

        console.print("  Deleting volume group...")
        result = deleter.delete(target.uuid)
        if result.succeeded:
            console.print(f"[green]  ✓ Delete request accepted via {result.api} API (task ID: {result.task_id})[/green]")
            summary.deleted.append(target)
        else:
            console.print(f"[red]  ✗ Failed to delete: {escape(str(result.error))}[/red]")
            logger.warning("Delete of %s (%s) failed after %d attempt(s): %s",
                           target.name, target.uuid, result.attempts, result.error)
            summary.fail(target, result.error or "delete failed")

    # WRITE_WORKLIST
    if ctx.detach_only and summary.detached:
        try:
            count = write_worklist(ctx.worklist_path, summary.detached)
        except WorkListError:
            console.print("[yellow]Detached volume groups (uuid, name):[/yellow]")
            for target in summary.detached:
                console.print(f"  {target.uuid}  {escape(target.name)}")
            raise
        console.print(f"[green]✅ Wrote {count} volume group(s) to {ctx.worklist_path}[/green]")

    _print_storage_summary(ctx, summary)
    return summary


def _print_vms(vms: Sequence[VirtualMachine], cluster_name: str) -> None:
    console.print(f"Found {len(vms)} powered-off VM(s) in cluster '{cluster_name}':")
    for vm in vms:
        console.print(f"  - {vm.name} (UUID: {vm.uuid})")


@dataclass
class VmRunSummary:
    """Tally of a VM deletion run."""

    accepted: list[VirtualMachine] = field(default_factory=list)
    failed: list[tuple[VirtualMachine, str]] = field(default_factory=list)
    cancelled: bool = False
    nothing_to_do: bool = False

    def exit_code(self, fail_on_errors: bool = False) -> int:
        return 1 if fail_on_errors and self.failed else 0


def run_vm_teardown(
    ctx: RunContext,
    client: PrismClient,
    *,
    confirm: Confirm = prompt_confirm,
    inventory: Inventory | None = None,
) -> VmRunSummary:
    """Delete the powered-off VMs of a cluster via the v3 API.

    Args:
        ctx: Resolved run context; ``cluster_name`` must be set.
        client: Prism Central client.
        confirm: Confirmation gate; receives the question, returns consent.
        inventory: Inventory resolver, or None to build one on *client*.

    Returns:
        VmRunSummary of the run.

    Raises:
        InventoryError: If the VM list response is unusable.
    """
    inventory = inventory or Inventory(client)
    summary = VmRunSummary()

    console.print(Panel.fit(f"Finding powered-off VMs in cluster '{ctx.cluster_name}'", style="bold blue"))
    vms = inventory.powered_off_vms(ctx.cluster_name)
    if not vms:
        console.print(f"[yellow]ℹ️  No powered-off VMs found in cluster '{ctx.cluster_name}'.[/yellow]")
        summary.nothing_to_do = True
        return summary

    _print_vms(vms, ctx.cluster_name)
    question = f"Do you want to delete these {len(vms)} VM(s) via v3 API (DELETE /api/nutanix/v3/vms/{{uuid}})?"
    if not ctx.assume_yes and not confirm(question):
        console.print("Cancelled.")
        summary.cancelled = True
        return summary

    console.print(Panel.fit("Deleting VMs", style="bold blue"))
    for vm in vms:
        console.print(f"  Deleting VM: {vm.name} ({vm.uuid})...")
        result = delete_vm(client, vm.uuid)
        if result.accepted:
            console.print("[green]    ✓ Delete accepted (v3)[/green]")
            summary.accepted.append(vm)
        else:
            console.print(f"[red]    ✗ Failed: {escape(str(result.error))}[/red]")
            summary.failed.append((vm, result.error or "unknown"))

    console.print("=" * 42)
    console.print("Summary:")
    console.print(f"  Delete accepted: {len(summary.accepted)}")
    console.print(f"  Failed:          {len(summary.failed)}")
    console.print("=" * 42)
    console.print("\nNote: v3 VM delete is asynchronous (202). Check Prism Central tasks for completion.")
    return summary
