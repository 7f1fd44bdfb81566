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

"""Report command."""

from __future__ import annotations

from pathlib import Path

import typer

from pv_teardown.commands import connect
from pv_teardown.config import display_config, resolve_config
from pv_teardown.constants import DEFAULT_ENV_FILE
from pv_teardown.report import build_report, render_report


def report(
    debug: bool = typer.Option(False, "--debug", help="Log API requests and responses"),
    env_file: Path = typer.Option(Path(DEFAULT_ENV_FILE), "--env-file", help="File holding NUTANIX_* settings"),
) -> None:
    """Show Kubernetes clusters, their VMs and attached PVC volume groups."""
    ctx = resolve_config(env_file=env_file, debug=debug)
    display_config(ctx, show_storage=False)
    render_report(build_report(connect(ctx)))
