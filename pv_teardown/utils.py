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

"""Utility functions for endpoint parsing, request ids, and JSON lookups."""

from __future__ import annotations

import os
import random
import re
import time
import uuid
from typing import Any

from pv_teardown.constants import DEFAULT_PRISM_PORT

_ENDPOINT_RE = re.compile(r"^(?:https?://)?(?P<host>[^:/\s]+)(?::(?P<port>\d+))?")


class ConfigError(RuntimeError):
    """Raised when required connection settings are missing or invalid."""


def parse_endpoint(endpoint: str) -> str:
    """Normalise a Prism endpoint into an ``https://host:port`` base URL.

    Accepts ``https://host[:port]``, ``http://host[:port]`` or ``host[:port]``;
    anything after the authority is ignored.

    Args:
        endpoint: Endpoint value as configured by the operator.

    Returns:
        Base URL, always https, defaulting to port 9440.

    Raises:
        ConfigError: If no host can be extracted.
    """
    match = _ENDPOINT_RE.match(endpoint.strip())
    if not match:
        raise ConfigError(f"Could not parse NUTANIX_ENDPOINT: {endpoint}")
    port = match.group("port") or DEFAULT_PRISM_PORT
    return f"https://{match.group('host')}:{port}"


def generate_request_id() -> str:
    """Generate a unique NTNX-Request-Id for a mutating call.

    Returns:
        A UUID4 string; falls back to a reshaped pseudo-random hex string, or
        a time and pid composite when neither source is usable.
    """
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        pass
    try:
        h = f"{random.getrandbits(128):032x}"
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:]}"
    except (NotImplementedError, OSError):
        return f"fallback-{int(time.time())}-{os.getpid()}"


def dig(node: Any, *path: str | int, default: Any = None) -> Any:
    """Safely traverse nested dicts and lists by key/index path.

    Args:
        node: Parsed JSON document.
        *path: Sequence of dict keys and list indices.
        default: Value to return if any step is missing or null.

    Returns:
        The value at the path, or *default*.
    """
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or not -len(node) <= key < len(node):
                return default
            node = node[key]
        else:
            if not isinstance(node, dict):
                return default
            node = node.get(key)
        if node is None:
            return default
    return node


def first_present(node: Any, *paths: tuple[str | int, ...]) -> Any:
    """Return the first non-empty value among several paths."""
    for path in paths:
        value = dig(node, *path)
        if value not in (None, "", [], {}):
            return value
    return None


def truncate(text: str, limit: int) -> str:
    """Truncate text for log output, marking the cut."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... (truncated)"
