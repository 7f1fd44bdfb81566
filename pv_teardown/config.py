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

"""Configuration classes, RunContext, and config resolution/display."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from pv_teardown import console, logger
from pv_teardown.constants import (
    DEFAULT_CURL_TIMEOUT,
    DEFAULT_DELAY_BETWEEN_VGS,
    DEFAULT_DELETE_RETRIES,
    DEFAULT_DETACH_WAIT_SECONDS,
    DEFAULT_ENV_FILE,
    DEFAULT_WORKLIST_PATH,
)
from pv_teardown.utils import ConfigError, parse_endpoint


# ============================================================================
# Configuration classes
# ============================================================================

class PrismSettings(BaseSettings):
    """Prism Central credentials, auto-loaded from NUTANIX_* env vars and env.vars.

    Attributes:
        endpoint: Prism Central address (``host``, ``host:port`` or a URL).
        user: Username for basic authentication.
        password: Password for basic authentication.
    """

    model_config = SettingsConfigDict(
        env_prefix="NUTANIX_", env_file=DEFAULT_ENV_FILE, extra="ignore", frozen=True,
    )

    endpoint: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: SecretStr

    @field_validator("password")
    @classmethod
    def _password_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("must not be empty")
        return value


class TuningConfig(BaseSettings):
    """Timeouts, retries and pacing, auto-loaded from env vars and env.vars.

    Attributes:
        curl_timeout: Per-call HTTP timeout in seconds.
        delete_retries: Volume group delete attempts on transient errors.
        delay_between_vgs: Pause between volume groups in seconds.
        detach_wait_seconds: Pause after a detach before deleting, in seconds.
        fail_on_errors: Exit non-zero when any target failed.
    """

    model_config = SettingsConfigDict(env_file=DEFAULT_ENV_FILE, extra="ignore", frozen=True)

    curl_timeout: int = Field(default=DEFAULT_CURL_TIMEOUT, ge=1)
    delete_retries: int = Field(default=DEFAULT_DELETE_RETRIES, ge=1, le=20)
    delay_between_vgs: int = Field(default=DEFAULT_DELAY_BETWEEN_VGS, ge=0)
    detach_wait_seconds: int = Field(default=DEFAULT_DETACH_WAIT_SECONDS, ge=0)
    fail_on_errors: bool = False


def _describe_validation_error(err: ValidationError, env_file: Path) -> str:
    """Turn a settings ValidationError into operator-facing lines."""
    lines = []
    for item in err.errors():
        field = str(item["loc"][0]) if item["loc"] else "?"
        env_name = f"NUTANIX_{field}".upper() if field in PrismSettings.model_fields else field.upper()
        if item["type"] == "missing":
            lines.append(f"{env_name} is not set. Set it in {env_file} or export it.")
        else:
            lines.append(f"{env_name}: {item['msg']}")
    return "\n".join(lines)


def load_settings(env_file: Path = Path(DEFAULT_ENV_FILE)) -> tuple[PrismSettings, TuningConfig]:
    """Load credentials and tuning values from the environment and env file.

    Resolution priority: process environment > env file > defaults.

    Args:
        env_file: Path to a dotenv-style file (``export`` lines allowed).

    Returns:
        Tuple of (PrismSettings, TuningConfig).

    Raises:
        ConfigError: If a required value is missing or a value is invalid.
    """
    if not env_file.is_file():
        logger.warning("%s not found; reading settings from the environment only", env_file)
    try:
        prism = PrismSettings(_env_file=env_file)
        tuning = TuningConfig(_env_file=env_file)
    except ValidationError as err:
        raise ConfigError(_describe_validation_error(err, env_file)) from err
    return prism, tuning


# ============================================================================
# Run context
# ============================================================================

@dataclass(frozen=True)
class RunContext:
    """Immutable per-invocation configuration.

    Attributes:
        prism: Prism Central credentials.
        tuning: Timeout, retry and pacing values.
        base_url: Normalised ``https://host:port`` of Prism Central.
        cluster_name: Kubernetes cluster tag to discover, or None.
        volumes_file: Work-list to load instead of discovering, or None.
        detach_only: Whether to stop after detaching.
        debug: Whether to log API responses.
        assume_yes: Whether to skip the confirmation prompt.
        worklist_path: Where a detach-only run writes its work-list.
    """

    prism: PrismSettings
    tuning: TuningConfig
    base_url: str
    cluster_name: str | None = None
    volumes_file: Path | None = None
    detach_only: bool = False
    debug: bool = False
    assume_yes: bool = False
    worklist_path: Path = Path(DEFAULT_WORKLIST_PATH)

    @property
    def from_file(self) -> bool:
        return self.volumes_file is not None

    @property
    def cluster_label(self) -> str:
        return self.cluster_name or "from file"

    @property
    def fail_on_errors(self) -> bool:
        return self.tuning.fail_on_errors


# ============================================================================
# Config resolution
# ============================================================================

def validate_flags(
    cluster_name: str | None,
    volumes_file: Path | None,
    detach_only: bool,
) -> None:
    """Validate the discovery-source flags.

    Args:
        cluster_name: Value of --cluster, or None.
        volumes_file: Value of --volumes, or None.
        detach_only: Whether --detach-only was given.

    Raises:
        typer.BadParameter: If not exactly one of --cluster/--volumes is set,
            or --detach-only is combined with --volumes.
    """
    if cluster_name and volumes_file:
        raise typer.BadParameter("--cluster and --volumes are mutually exclusive")
    if not cluster_name and not volumes_file:
        raise typer.BadParameter("Either --cluster or --volumes is required")
    if detach_only and volumes_file:
        raise typer.BadParameter("--detach-only only applies to --cluster discovery")
    if volumes_file and not volumes_file.is_file():
        raise typer.BadParameter(f"Volumes file not found: {volumes_file}")


def resolve_config(
    env_file: Path = Path(DEFAULT_ENV_FILE),
    cluster_name: str | None = None,
    volumes_file: Path | None = None,
    detach_only: bool = False,
    debug: bool = False,
    assume_yes: bool = False,
    fail_on_errors: bool | None = None,
    worklist_path: Path | None = None,
) -> RunContext:
    """Merge CLI overrides, environment variables, and defaults into a RunContext.

    Resolution priority: CLI arguments > environment > env file > defaults.

    Args:
        env_file: Path to the env file holding NUTANIX_* settings.
        cluster_name: Kubernetes cluster tag to discover, or None.
        volumes_file: Work-list to load, or None.
        detach_only: Whether to stop after detaching.
        debug: Whether to log API responses.
        assume_yes: Whether to skip the confirmation prompt.
        fail_on_errors: CLI override for FAIL_ON_ERRORS, or None.
        worklist_path: CLI override for the work-list output path, or None.

    Returns:
        Fully resolved RunContext.

    Raises:
        ConfigError: If credentials are missing or the endpoint cannot be parsed.
    """
    prism, tuning = load_settings(env_file)
    if fail_on_errors is not None:
        tuning = tuning.model_copy(update={"fail_on_errors": fail_on_errors})

    return RunContext(
        prism=prism,
        tuning=tuning,
        base_url=parse_endpoint(prism.endpoint),
        cluster_name=cluster_name,
        volumes_file=volumes_file,
        detach_only=detach_only,
        debug=debug,
        assume_yes=assume_yes,
        worklist_path=worklist_path or Path(DEFAULT_WORKLIST_PATH),
    )


# ============================================================================
# Display
# ============================================================================

def display_config(ctx: RunContext, show_storage: bool = True) -> None:
    """Print the connection and the settings relevant to this run.

    Args:
        ctx: Resolved run context.
        show_storage: Whether to include the volume group teardown settings.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print(f"  Prism Central   : {ctx.base_url}")
    console.print(f"  User            : {ctx.prism.user}")
    if ctx.cluster_name or ctx.from_file:
        console.print(f"  Cluster filter  : {ctx.cluster_label}")
    if not show_storage:
        return

    if ctx.detach_only:
        console.print("[yellow]  Mode            : DETACH ONLY (no volume group deletion)[/yellow]")
    else:
        console.print(f"  Delete retries  : {ctx.tuning.delete_retries} (RPC/transient errors)")
        console.print(f"  Between VGs     : {ctx.tuning.delay_between_vgs}s")
        console.print(f"  After detach    : {ctx.tuning.detach_wait_seconds}s")
    console.print(f"  HTTP timeout    : {ctx.tuning.curl_timeout}s")
    if ctx.debug:
        console.print("[yellow]  Debug: detach API responses will be logged[/yellow]")
