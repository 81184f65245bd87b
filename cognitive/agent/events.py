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

"""Events emitted to the host while a turn runs.

Event types and payloads:

``chunk``
    ``str``: one streamed text delta.
``agent-tool-start``
    ``{id, name, parameters, status: "executing", timestamp}``
``agent-tool-res``
    ``{id, name, result, status: "completed"}``
``agent-tool-error``
    ``{id, name, error, status: "error"}``
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from cognitive.core.errors import EventEmissionError

logger = logging.getLogger(__name__)

EVENT_CHUNK = "chunk"
EVENT_TOOL_START = "agent-tool-start"
EVENT_TOOL_RESULT = "agent-tool-res"
EVENT_TOOL_ERROR = "agent-tool-error"


@dataclass(frozen=True)
class AgentEvent:
    type: str
    payload: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "payload": self.payload}


EventSink = Callable[[AgentEvent], None]


def emit(sink: EventSink, event_type: str, payload: Any) -> None:
    """Deliver one event synchronously.

    Raises:
        EventEmissionError: If the sink raises
    """
    try:
        sink(AgentEvent(event_type, payload))
    except Exception as e:
        logger.error(f"Event sink rejected {event_type}: {e}")
        raise EventEmissionError(event_type, cause=e) from e


def new_tool_call_id() -> str:
    return str(uuid.uuid4())


def tool_start_payload(call_id: str, name: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": call_id,
        "name": name,
        "parameters": parameters,
        "status": "executing",
        "timestamp": int(time.time()),
    }


def tool_result_payload(call_id: str, name: str, result: str) -> Dict[str, Any]:
    return {"id": call_id, "name": name, "result": result, "status": "completed"}


def tool_error_payload(call_id: str, name: str, error: str) -> Dict[str, Any]:
    return {"id": call_id, "name": name, "error": error, "status": "error"}


class EventCollector:
    """Sink that records events in memory (CLI transcript, tests)."""

    def __init__(self) -> None:
        self.events: List[AgentEvent] = []

    def __call__(self, event: AgentEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[AgentEvent]:
        return [e for e in self.events if e.type == event_type]
