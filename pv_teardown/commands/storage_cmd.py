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

"""Storage subcommands (delete)."""

from __future__ import annotations

from pathlib import Path

import typer

from pv_teardown.commands import connect
from pv_teardown.config import display_config, resolve_config, validate_flags
from pv_teardown.constants import DEFAULT_ENV_FILE, DEFAULT_WORKLIST_PATH
from pv_teardown.orchestrator import run_storage_teardown

app = typer.Typer(help="Detach and delete persistent-volume volume groups.")


@app.command("delete")
def delete(
    cluster_name: str | None = typer.Option(None, "--cluster", help="Kubernetes cluster tag to discover"),
    volumes_file: Path | None = typer.Option(None, "--volumes", help="Work-list written by a --detach-only run"),
    detach_only: bool = typer.Option(False, "--detach-only", help="Detach and write the work-list; delete nothing"),
    debug: bool = typer.Option(False, "--debug", help="Log API requests and responses"),
    assume_yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    worklist_path: Path = typer.Option(
        Path(DEFAULT_WORKLIST_PATH), "--worklist", help="Where --detach-only writes the work-list",
    ),
    fail_on_errors: bool | None = typer.Option(
        None, "--fail-on-errors/--no-fail-on-errors", help="Exit 1 when any volume group failed",
    ),
    env_file: Path = typer.Option(Path(DEFAULT_ENV_FILE), "--env-file", help="File holding NUTANIX_* settings"),
) -> None:
    """Detach volume groups from powered-off cluster VMs, then delete them."""
    validate_flags(cluster_name, volumes_file, detach_only)
    ctx = resolve_config(
        env_file=env_file,
        cluster_name=cluster_name,
        volumes_file=volumes_file,
        detach_only=detach_only,
        debug=debug,
        assume_yes=assume_yes,
        fail_on_errors=fail_on_errors,
        worklist_path=worklist_path,
    )
    display_config(ctx)
    summary = run_storage_teardown(ctx, connect(ctx))
    raise typer.Exit(code=summary.exit_code(ctx.fail_on_errors))
