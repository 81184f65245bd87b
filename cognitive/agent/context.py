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

"""Immutable per-turn agent context."""

import platform
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from cognitive.config.settings import Settings


def current_os_name() -> str:
    """Lower-case OS family name (``linux``, ``darwin``, ``windows``)."""
    return platform.system().lower() or "unknown"


@dataclass(frozen=True)
class AgentContext:
    """Snapshot of configuration handed to each turn.

    Credentials and endpoints live on ``settings``. A new snapshot is built
    whenever the owning service is reconfigured, so a running turn never sees
    a change half-way.
    """

    settings: Settings = field(default_factory=Settings)
    workspace: Optional[Path] = None
    os_name: str = field(default_factory=current_os_name)

    def with_settings(self, **updates: Any) -> "AgentContext":
        return replace(self, settings=self.settings.model_copy(update=updates))

    def with_workspace(self, workspace: Optional[Path]) -> "AgentContext":
        return replace(self, workspace=workspace)
