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

"""Draining provider text streams.

Every non-empty delta is appended to the reply and handed to ``on_content``
as it arrives. Failures on either side end the stream.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class StreamMetrics:
    """Counters for one drained stream (monotonic clock)."""

    opened_at: float = field(default_factory=time.monotonic)
    first_delta_at: Optional[float] = None
    closed_at: Optional[float] = None
    total_chunks: int = 0
    total_content_length: int = 0

    def record(self, delta: str) -> None:
        if self.first_delta_at is None:
            self.first_delta_at = time.monotonic()
        self.total_chunks += 1
        self.total_content_length += len(delta)

    @property
    def first_delta_latency(self) -> Optional[float]:
        if self.first_delta_at is None:
            return None
        return self.first_delta_at - self.opened_at

    @property
    def elapsed(self) -> float:
        end = self.closed_at if self.closed_at is not None else time.monotonic()
        return end - self.opened_at

    def describe(self) -> str:
        latency = self.first_delta_latency
        first = "n/a" if latency is None else f"{latency:.2f}s"
        return (
            f"{self.total_chunks} chunks / {self.total_content_length} chars, "
            f"first delta {first}, elapsed {self.elapsed:.2f}s"
        )


@dataclass
class StreamResult:
    content: str = ""
    metrics: StreamMetrics = field(default_factory=StreamMetrics)


class StreamHandler:
    """Consumes a provider text stream.

    ``on_content`` is not best-effort: an exception raised by it stops the
    stream and reaches the caller, as do provider errors.
    """

    def __init__(self, on_content: Optional[Callable[[str], None]] = None):
        self.on_content = on_content

    async def process_stream(self, stream: AsyncIterator[str]) -> StreamResult:
        """Drain ``stream`` and return the accumulated text."""
        metrics = StreamMetrics()
        parts: List[str] = []

        try:
            async for delta in stream:
                if not delta:
                    continue
                metrics.record(delta)
                parts.append(delta)
                if self.on_content:
                    self.on_content(delta)
        finally:
            metrics.closed_at = time.monotonic()

        logger.debug(f"Stream closed: {metrics.describe()}")
        return StreamResult(content="".join(parts), metrics=metrics)
