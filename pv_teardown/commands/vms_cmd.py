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

"""VM subcommands (delete)."""

from __future__ import annotations

from pathlib import Path

import typer

from pv_teardown.commands import connect
from pv_teardown.config import display_config, resolve_config
from pv_teardown.constants import DEFAULT_ENV_FILE
from pv_teardown.orchestrator import run_vm_teardown

app = typer.Typer(help="Delete powered-off Kubernetes VMs.")


@app.command("delete")
def delete(
    cluster_name: str = typer.Option(..., "--cluster", help="Kubernetes cluster tag to match"),
    debug: bool = typer.Option(False, "--debug", help="Log API requests and responses"),
    assume_yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    env_file: Path = typer.Option(Path(DEFAULT_ENV_FILE), "--env-file", help="File holding NUTANIX_* settings"),
) -> None:
    """Delete the powered-off VMs of a cluster (run after its volume groups are gone)."""
    ctx = resolve_config(env_file=env_file, cluster_name=cluster_name, debug=debug, assume_yes=assume_yes)
    display_config(ctx, show_storage=False)
    summary = run_vm_teardown(ctx, connect(ctx))
    raise typer.Exit(code=summary.exit_code(ctx.fail_on_errors))
