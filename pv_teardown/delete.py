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

"""Volume group deletion with API-generation fallback and transient-error retry, and VM deletion."""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from rich.markup import escape
from tenacity import Retrying, RetryCallState, retry_if_result, stop_after_attempt

from pv_teardown import console, logger
from pv_teardown.client import PrismClient
from pv_teardown.constants import (
    DEFAULT_DELETE_RETRIES,
    DELETE_RETRY_DELAYS,
    TRANSIENT_ERROR_PATTERN,
    V3_VOLUME_GROUP,
    V4_VOLUME_GROUP,
)
from pv_teardown.detach import task_succeeded, v3_error
from pv_teardown.utils import first_present, truncate

UNEXPECTED_RESPONSE = "unexpected response from v4.1 and v3"

_TRANSIENT_RE = re.compile(TRANSIENT_ERROR_PATTERN, re.IGNORECASE)


def is_transient(message: str | None) -> bool:
    """True when an API error message looks like an RPC/network hiccup worth retrying."""
    return bool(message) and bool(_TRANSIENT_RE.search(message))


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of deleting one volume group.

    Attributes:
        succeeded: Whether either API accepted the delete.
        api: Which API generation accepted it ("v4.1" or "v3").
        task_id: Task identifier reported by the accepting API.
        error: Last error text when the delete failed.
        transient: Whether the last error matched the transient vocabulary.
        attempts: Number of two-endpoint attempts made.
    """

    succeeded: bool
    api: str | None = None
    task_id: str | None = None
    error: str | None = None
    transient: bool = False
    attempts: int = 1


class VolumeGroupDeleter:
    """Deletes volume groups via v4.1, falling back to v3, retrying transient errors."""

    def __init__(
        self,
        client: PrismClient,
        retries: int = DEFAULT_DELETE_RETRIES,
        delays: Sequence[float] = DELETE_RETRY_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.retries = max(1, retries)
        self.delays = tuple(delays) or (0,)
        self.sleep = sleep

    def _wait(self, retry_state: RetryCallState) -> float:
        """Delay after attempt n is ``delays[n-1]``; the last delay repeats."""
        index = min(retry_state.attempt_number, len(self.delays)) - 1
        return float(self.delays[index])

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        result: DeleteResult = retry_state.outcome.result()
        console.print(f"[yellow]  ⚠️  API returned retryable error: {escape(str(result.error))}[/yellow]")
        console.print(
            f"[yellow]  Retry {retry_state.attempt_number}/{self.retries - 1} in "
            f"{retry_state.next_action.sleep:g}s (RPC/transient errors may succeed on retry)...[/yellow]"
        )

    def attempt_once(self, volume_group_id: str) -> DeleteResult:
        """One pass over both API generations, without retry."""
        v4 = self.client.call("DELETE", V4_VOLUME_GROUP.format(vg_id=volume_group_id))
        v4_data = v4.json()
        task_id = first_present(v4_data, ("data", "extId"))
        if task_id:
            return DeleteResult(True, api="v4.1", task_id=str(task_id))

        v3 = self.client.call("DELETE", V3_VOLUME_GROUP.format(vg_id=volume_group_id))
        v3_data = v3.json()
        if task_succeeded(v3_data):
            task_id = first_present(
                v3_data, ("status", "execution_context", "task_uuid"), ("metadata", "uuid"),
            )
            return DeleteResult(True, api="v3", task_id=str(task_id or "unknown"))

        error = first_present(v4_data, ("data", "error", 0, "message"), ("message",)) or v3_error(v3_data)
        if not error:
            logger.warning(
                "Unexpected delete response for %s: v4.1=%s v3=%s",
                volume_group_id, truncate(v4.body, 300) or "(empty)", truncate(v3.body, 300) or "(empty)",
            )
            return DeleteResult(False, error=UNEXPECTED_RESPONSE)
        return DeleteResult(False, error=error, transient=is_transient(error))

    def delete(self, volume_group_id: str) -> DeleteResult:
        """Delete a volume group, retrying only on transient errors.

        Args:
            volume_group_id: Volume group uuid.

        Returns:
            DeleteResult; failures are returned, never raised.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.retries),
            wait=self._wait,
            retry=retry_if_result(lambda result: not result.succeeded and result.transient),
            sleep=self.sleep,
            before_sleep=self._before_sleep,
            retry_error_callback=lambda state: state.outcome.result(),
        )
        attempts = 0

        def _attempt() -> DeleteResult:
            nonlocal attempts
            attempts += 1
            return self.attempt_once(volume_group_id)

        result: DeleteResult = retrying(_attempt)
        return DeleteResult(
            succeeded=result.succeeded,
            api=result.api,
            task_id=result.task_id,
            error=result.error,
            transient=result.transient,
            attempts=attempts,
        )


# ============================================================================
# VM deletion
# ============================================================================

@dataclass(frozen=True)
class VmDeleteResult:
    """Outcome of a v3 VM delete request (asynchronous; 202 on acceptance)."""

    accepted: bool
    error: str | None = None


def delete_vm(client: PrismClient, vm_id: str) -> VmDeleteResult:
    """Request deletion of a VM via ``DELETE /api/nutanix/v3/vms/{uuid}``.

    Args:
        client: Prism Central client.
        vm_id: VM uuid.

    Returns:
        VmDeleteResult; accepted when a non-error response echoes the VM,
        carries no message list, or is empty.
    """
    resp = client.delete_vm(vm_id)
    data = resp.json()
    if resp.status is not None and resp.status >= 400:
        return VmDeleteResult(False, error=v3_error(data) or f"HTTP {resp.status}")
    if first_present(data, ("metadata", "uuid")):
        return VmDeleteResult(True)
    if not resp.is_empty and not (data or {}).get("message_list"):
        return VmDeleteResult(True)
    if resp.is_empty and resp.responded:
        return VmDeleteResult(True)
    return VmDeleteResult(False, error=v3_error(data) or resp.transport_error or "unknown")
