#!/usr/bin/env python3
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

"""
cli.py - Teardown of Kubernetes persistent-volume storage and VMs on Prism Central.

Subcommands:
    storage   Detach and delete persistent-volume volume groups
    vms       Delete powered-off Kubernetes VMs
    report    Show clusters, VMs and attached PVCs

Examples:
    # Detach only, writing volumes.list.tmp
    pv-teardown storage delete --cluster mgmt-cluster --detach-only

    # Delete the volume groups from the work-list
    pv-teardown storage delete --volumes volumes.list.tmp

    # Detach and delete in one pass
    pv-teardown storage delete --cluster mgmt-cluster

    # Then delete the VMs
    pv-teardown vms delete --cluster mgmt-cluster

For detailed usage information, run: pv-teardown --help
"""

from __future__ import annotations

import logging
import sys

import typer

from pv_teardown import console
from pv_teardown.commands import report_cmd, storage_cmd, vms_cmd

app = typer.Typer(
    help="Teardown of Kubernetes persistent-volume storage and VMs on Prism Central.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(storage_cmd.app, name="storage")
app.add_typer(vms_cmd.app, name="vms")
app.command("report")(report_cmd.report)


def main() -> None:
    """Console-script entry point."""
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
