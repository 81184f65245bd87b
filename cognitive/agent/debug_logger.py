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

"""Turn-level progress logging.

One banner per iteration plus one line per tool call keeps a long turn
readable in the console.

Level usage:
- DEBUG: state transitions, parser decisions, model reply previews
- INFO: iteration banners, tool calls, index totals, turn summary
- WARNING: recoverable failures (outline extraction, unreadable snapshot)
- ERROR: turn-ending failures
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

from cognitive.providers.base import Message

logger = logging.getLogger(__name__)

# Chatty third-party loggers kept at WARNING
NOISY_LOGGERS = [
    "httpcore",
    "httpx",
    "asyncio",
]

PREVIEW_CHARS = 80
ARG_PREVIEW_CHARS = 30
MAX_PREVIEW_ARGS = 3


def configure_logging_levels(log_level: str = "INFO") -> None:
    """Apply ``log_level`` to the ``cognitive`` logger tree."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger("cognitive").setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    """Single-line prefix of ``text``."""
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else flat[:limit] + "..."


@dataclass
class TurnStats:
    """Counters for the turn being logged."""

    iterations: int = 0
    tool_calls: int = 0
    tool_failures: int = 0
    history_messages: int = 0
    history_chars: int = 0
    started: float = field(default_factory=time.monotonic)

    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def summary(self) -> str:
        return (
            f"{self.iterations} iteration(s), {self.tool_calls} tool call(s) "
            f"({self.tool_failures} failed), history {self.history_messages} msgs / "
            f"{self.history_chars:,} chars, {self.elapsed():.1f}s"
        )


class DebugLogger:
    """Writes turn progress to the ``cognitive.debug`` logger."""

    def __init__(self, name: str = "cognitive.debug", enabled: bool = True):
        self.log = logging.getLogger(name)
        self.enabled = enabled
        self.stats = TurnStats()

    def reset(self) -> None:
        self.stats = TurnStats()

    def log_iteration_start(self, iteration: int, max_iterations: int) -> None:
        self.stats.iterations = iteration
        if self.enabled:
            self.log.info(f"── iteration {iteration}/{max_iterations} ──")

    def log_model_response(self, content: str, tool_calls: int) -> None:
        if not self.enabled:
            return
        calls = f", {tool_calls} tool call(s)" if tool_calls else ""
        self.log.debug(f"   reply {len(content)} chars{calls}: {preview(content, 60)}")

    def log_tool_call(self, tool_name: str, args: Dict[str, Any]) -> None:
        self.stats.tool_calls += 1
        if not self.enabled:
            return
        shown = [f"{k}={preview(str(v), ARG_PREVIEW_CHARS)}" for k, v in list(args.items())[:MAX_PREVIEW_ARGS]]
        hidden = len(args) - len(shown)
        if hidden > 0:
            shown.append(f"+{hidden} more")
        self.log.info(f"   -> {tool_name}({', '.join(shown)})")

    def log_tool_result(self, tool_name: str, success: bool, output: str, elapsed_ms: float) -> None:
        if not success:
            self.stats.tool_failures += 1
        if not self.enabled:
            return
        status = "ok" if success else "failed"
        self.log.info(f"   <- {tool_name} {status}: {len(output):,} chars in {elapsed_ms:.0f}ms")

    def log_turn_summary(self, messages: List[Message], stop_reason: str) -> None:
        self.stats.history_messages = len(messages)
        self.stats.history_chars = sum(len(m.content) for m in messages)
        if self.enabled:
            self.log.info(f"   turn ended ({stop_reason}): {self.stats.summary()}")
