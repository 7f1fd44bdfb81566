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

"""Work-list persistence between the detach-only and delete-from-file phases."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from pv_teardown import logger
from pv_teardown.models import AttachmentTarget


class WorkListError(RuntimeError):
    """Raised when a work-list file is missing, unreadable, or holds no valid records."""


def write_worklist(path: Path, targets: Iterable[AttachmentTarget]) -> int:
    """Write targets as JSON Lines, replacing *path* atomically.

    Args:
        path: Destination file.
        targets: Targets to persist, in processing order.

    Returns:
        Number of records written.

    Raises:
        WorkListError: If the file cannot be written.
    """
    lines = [json.dumps(t.to_record(), separators=(",", ":")) for t in targets]
    directory = path.parent if str(path.parent) else Path(".")
    try:
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")
            os.replace(tmp_name, path)
        finally:
            Path(tmp_name).unlink(missing_ok=True)
    except OSError as err:
        raise WorkListError(f"Cannot write volumes file {path}: {err}") from err
    logger.info("Wrote %d volume group(s) to %s", len(lines), path)
    return len(lines)


def _parse_records(text: str) -> list[object]:
    """Parse JSON Lines, or a single JSON array for older list files."""
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            data = json.loads(stripped)
        except ValueError:
            data = None
        if isinstance(data, list):
            return data

    records: list[object] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            records.append(json.loads(line))
        except ValueError:
            continue
    return records


def read_worklist(path: Path) -> list[AttachmentTarget]:
    """Load targets from a work-list file.

    Blank, malformed and partial records are dropped; duplicate uuids keep the
    first occurrence.

    Args:
        path: Work-list file written by a detach-only run.

    Returns:
        Targets in file order.

    Raises:
        WorkListError: If the file cannot be read or has no valid records.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as err:
        raise WorkListError(f"Cannot read volumes file {path}: {err}") from err

    targets: list[AttachmentTarget] = []
    seen: set[str] = set()
    for record in _parse_records(text):
        target = AttachmentTarget.from_record(record)
        if target is None or target.uuid in seen:
            continue
        seen.add(target.uuid)
        targets.append(target)

    if not targets:
        raise WorkListError(f"No valid volume group entries (uuid, name) found in {path}")
    return targets
