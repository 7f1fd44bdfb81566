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

"""Typer sub-applications for the pv-teardown CLI."""

from __future__ import annotations

import logging

from pv_teardown import logger
from pv_teardown.client import PrismClient
from pv_teardown.config import RunContext


def connect(ctx: RunContext) -> PrismClient:
    """Build the Prism Central client for a run, enabling API logging under --debug."""
    if ctx.debug:
        logger.setLevel(logging.DEBUG)
    return PrismClient(
        ctx.base_url,
        ctx.prism.user,
        ctx.prism.password.get_secret_value(),
        timeout=ctx.tuning.curl_timeout,
    )
