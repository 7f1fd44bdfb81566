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

from __future__ import annotations

import pytest

from pv_teardown.client import ApiResponse
from pv_teardown.constants import V3_VM, V3_VOLUME_GROUP, V4_VOLUME_GROUP
from pv_teardown.delete import UNEXPECTED_RESPONSE, VolumeGroupDeleter, delete_vm, is_transient
from tests.conftest import NO_ROUTE, FakePrismClient, empty_response, json_response

VG = "vg-1"
V4_PATH = V4_VOLUME_GROUP.format(vg_id=VG)
V3_PATH = V3_VOLUME_GROUP.format(vg_id=VG)


def v4_error(message: str) -> ApiResponse:
    return json_response({"data": {"error": [{"message": message}]}}, status=500)


def make_deleter(client: FakePrismClient, sleeps: list[float], retries: int = 3) -> VolumeGroupDeleter:
    return VolumeGroupDeleter(client, retries=retries, delays=(2, 5, 10), sleep=sleeps.append)


def test_v4_acceptance_skips_v3(client: FakePrismClient, no_sleep: list[float]) -> None:
    client.route("DELETE", V4_PATH, json_response({"data": {"extId": "task-9"}}, status=202))
    result = make_deleter(client, no_sleep).delete(VG)
    assert (result.succeeded, result.api, result.task_id, result.attempts) == (True, "v4.1", "task-9", 1)
    assert client.paths() == [V4_PATH]


def test_v3_fallback_reports_task_id(client: FakePrismClient, no_sleep: list[float]) -> None:
    client.route("DELETE", V4_PATH, json_response({"message": "not found"}, status=404))
    client.route("DELETE", V3_PATH, json_response({
        "status": {"state": "COMPLETE", "execution_context": {"task_uuid": "task-3"}},
        "metadata": {"uuid": VG},
    }))
    result = make_deleter(client, no_sleep).delete(VG)
    assert (result.succeeded, result.api, result.task_id) == (True, "v3", "task-3")


@pytest.mark.parametrize(("retries", "expected_sleeps"), [(3, [2, 5]), (5, [2, 5, 10, 10]), (1, [])])
def test_persistent_transient_error_is_bounded(
    client: FakePrismClient, no_sleep: list[float], retries: int, expected_sleeps: list[float],
) -> None:
    client.route("DELETE", V4_PATH, v4_error("RPC request timed out"))
    result = make_deleter(client, no_sleep, retries=retries).delete(VG)
    assert not result.succeeded
    assert result.transient
    assert result.attempts == retries
    assert client.paths().count(V4_PATH) == retries
    assert no_sleep == expected_sleeps


def test_non_transient_error_is_not_retried(client: FakePrismClient, no_sleep: list[float]) -> None:
    client.route("DELETE", V4_PATH, json_response({"message": "Volume group is attached to a VM"}, status=409))
    result = make_deleter(client, no_sleep).delete(VG)
    assert result.attempts == 1
    assert result.error == "Volume group is attached to a VM"
    assert no_sleep == []


def test_v3_error_used_when_v4_has_none(client: FakePrismClient, no_sleep: list[float]) -> None:
    client.route("DELETE", V3_PATH, json_response({"message_list": [{"message": "Service temporarily unavailable"}]}))
    result = make_deleter(client, no_sleep, retries=2).delete(VG)
    assert result.error == "Service temporarily unavailable"
    assert result.attempts == 2


def test_transient_then_success(client: FakePrismClient, no_sleep: list[float]) -> None:
    client.route("DELETE", V4_PATH, v4_error("connection reset"), json_response({"data": {"extId": "task-2"}}))
    result = make_deleter(client, no_sleep).delete(VG)
    assert result.succeeded
    assert result.attempts == 2
    assert no_sleep == [2]


def test_uninterpretable_responses_are_terminal(client: FakePrismClient, no_sleep: list[float]) -> None:
    result = make_deleter(client, no_sleep).delete(VG)
    assert not result.succeeded
    assert result.error == UNEXPECTED_RESPONSE
    assert result.attempts == 1


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("RPC request failed", True),
        ("Request TIMEOUT", True),
        ("Connection refused", True),
        ("Service temporarily unavailable", True),
        ("Volume group is attached", False),
        ("", False),
        (None, False),
    ],
)
def test_is_transient(message: str | None, expected: bool) -> None:
    assert is_transient(message) is expected


@pytest.mark.parametrize(
    ("response", "accepted", "error"),
    [
        (json_response({"metadata": {"uuid": "vm-1"}}, status=202), True, None),
        (json_response({"status": {"state": "PENDING"}}, status=202), True, None),
        (empty_response(202), True, None),
        (json_response({"message_list": [{"message": "VM has attached volume groups"}]}, status=409),
         False, "VM has attached volume groups"),
        (json_response({"message": "not found", "message_list": [{"reason": "x"}]}, status=404), False, "not found"),
        (json_response({"message_list": [{}]}, status=500), False, "HTTP 500"),
        (json_response({"message": "Authentication required"}, status=401), False, "Authentication required"),
        (empty_response(404), False, "HTTP 404"),
        (NO_ROUTE, False, "no route"),
    ],
)
def test_delete_vm_acceptance(client: FakePrismClient, response: ApiResponse, accepted: bool, error: str | None) -> None:
    client.route("DELETE", V3_VM.format(vm_id="vm-1"), response)
    result = delete_vm(client, "vm-1")
    assert result.accepted is accepted
    assert result.error == error
