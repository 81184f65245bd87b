# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
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

"""Centralized timeout configuration for Cognitive.

Usage:
    from cognitive.config.timeouts import Timeouts

    async with httpx.AsyncClient(timeout=Timeouts.http()) as client:
        ...
"""

import os
from dataclasses import dataclass

import httpx


@dataclass(frozen=True)
class TimeoutConfig:
    """Timeout values in seconds.

    Environment variables can override defaults:
        COGNITIVE_TIMEOUT_HTTP_CONNECT=5.0
        COGNITIVE_TIMEOUT_HTTP_LLM_API=300.0
    """

    # Connection establishment for any provider
    HTTP_CONNECT: float = 10.0

    # Quick HTTP calls (model listing)
    HTTP_QUICK_CHECK: float = 10.0

    # LLM API calls, including the whole streamed reply
    HTTP_LLM_API: float = 300.0

    def http(self) -> httpx.Timeout:
        """Timeout for streaming and completion requests."""
        return httpx.Timeout(self.HTTP_LLM_API, connect=self.HTTP_CONNECT)

    def quick(self) -> httpx.Timeout:
        """Timeout for short metadata requests."""
        return httpx.Timeout(self.HTTP_QUICK_CHECK, connect=self.HTTP_CONNECT)


def _load_from_env() -> TimeoutConfig:
    """Load timeout configuration with environment overrides."""
    defaults = TimeoutConfig()
    values = {}
    for name in ("HTTP_CONNECT", "HTTP_QUICK_CHECK", "HTTP_LLM_API"):
        raw = os.getenv(f"COGNITIVE_TIMEOUT_{name}")
        if raw is None:
            continue
        try:
            values[name] = float(raw)
        except ValueError:
            values[name] = getattr(defaults, name)
    return TimeoutConfig(**values)


Timeouts = _load_from_env()
