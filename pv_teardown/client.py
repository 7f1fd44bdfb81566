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

"""Prism Central HTTP client.

All calls are synchronous and never raise on HTTP or transport failure: the
caller receives an ``ApiResponse`` and decides what the body means. Prism
mutating endpoints frequently answer ``202 Accepted`` with no body, so an
empty body is a normal outcome that callers must handle explicitly.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import requests
import urllib3
from requests.auth import HTTPBasicAuth

from pv_teardown import logger
from pv_teardown.constants import (
    DEBUG_BODY_LIMIT,
    DEFAULT_CURL_TIMEOUT,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PRISM_PORT,
    REQUEST_ID_HEADER,
    V3_CLUSTER,
    V3_VM,
    V3_VMS_LIST,
    V3_VOLUME_GROUPS_LIST,
)
from pv_teardown.utils import generate_request_id, truncate

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


@dataclass(frozen=True)
class ApiResponse:
    """Raw outcome of a single API call.

    Attributes:
        status: HTTP status code, or None if no response was received.
        body: Response body text (empty on transport failure).
        transport_error: Connection/timeout/TLS error text, or None.
    """

    status: int | None
    body: str = ""
    transport_error: str | None = None

    @property
    def responded(self) -> bool:
        return self.status is not None

    @property
    def is_empty(self) -> bool:
        return not self.body.strip()

    def json(self) -> dict[str, Any] | None:
        """Parse the body as a JSON object; None when empty, invalid, or not an object."""
        if self.is_empty:
            return None
        try:
            data = json.loads(self.body)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None


class PrismClient:
    """Authenticated client for a Prism Central (or Prism Element) endpoint."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: int = DEFAULT_CURL_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._username = username
        self._password = password
        self._session = session or requests.Session()
        self._session.auth = HTTPBasicAuth(username, password)
        self._session.verify = False
        self._session.headers.update({"Accept": "application/json"})

    def call(self, method: str, path: str, body: Any = None) -> ApiResponse:
        """Issue one HTTP call against this endpoint.

        Args:
            method: HTTP verb (GET, POST, PUT, DELETE).
            path: Absolute API path beginning with ``/``.
            body: JSON-serialisable request body, or None.

        Returns:
            ApiResponse; transport failures yield ``status=None`` and an empty body.
        """
        method = method.upper()
        url = f"{self.base_url}{path}"
        headers = {}
        if method != "GET":
            headers[REQUEST_ID_HEADER] = generate_request_id()

        try:
            resp = self._session.request(
                method, url, json=body, headers=headers, timeout=self.timeout,
            )
            result = ApiResponse(status=resp.status_code, body=resp.text or "")
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            result = ApiResponse(status=None, body="", transport_error=str(exc))

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "API %s %s body=%s -> status=%s response=%s",
                method, url,
                json.dumps(body) if body is not None else "-",
                result.status,
                truncate(result.body, DEBUG_BODY_LIMIT) if result.body else "(empty body)",
            )
        return result

    def for_cluster(self, address: str) -> PrismClient:
        """Build a client for a cluster's own management endpoint (same credentials)."""
        return PrismClient(
            f"https://{address}:{DEFAULT_PRISM_PORT}",
            self._username,
            self._password,
            timeout=self.timeout,
        )

    # -- v3 convenience calls --

    def list_vms(self, length: int = DEFAULT_PAGE_SIZE) -> ApiResponse:
        return self.call("POST", V3_VMS_LIST, {"kind": "vm", "length": length})

    def list_volume_groups(self, length: int = DEFAULT_PAGE_SIZE) -> ApiResponse:
        return self.call("POST", V3_VOLUME_GROUPS_LIST, {"kind": "volume_group", "length": length})

    def get_vm(self, vm_id: str) -> ApiResponse:
        return self.call("GET", V3_VM.format(vm_id=vm_id))

    def get_cluster(self, cluster_id: str) -> ApiResponse:
        return self.call("GET", V3_CLUSTER.format(cluster_id=cluster_id))

    def update_vm(self, vm_id: str, body: dict[str, Any]) -> ApiResponse:
        return self.call("PUT", V3_VM.format(vm_id=vm_id), body)

    def delete_vm(self, vm_id: str) -> ApiResponse:
        return self.call("DELETE", V3_VM.format(vm_id=vm_id))
