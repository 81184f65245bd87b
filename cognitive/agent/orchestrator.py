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

"""Agent orchestrator: the bounded think-act loop of one chat turn.

Each iteration streams one model reply, parses tool calls out of it, runs
them and folds their results back into the conversation as a single user
message. The loop ends when a reply without tool calls carries the
completion marker, or when the iteration cap is reached.

State machine per iteration:

    COMPOSING -> STREAMING -> PARSING -> NO_ACTION -> COMPOSING | DONE
                                      -> EXECUTING -> COMPOSING | DONE

Provider failures and event-sink failures abort the turn by raising. Tool
failures never do; they are reported to the host and the model.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from cognitive.agent.context import AgentContext
from cognitive.agent.conversation import ConversationManager, last_user_content
from cognitive.agent.debug_logger import DebugLogger
from cognitive.agent.events import (
    EVENT_CHUNK,
    EVENT_TOOL_ERROR,
    EVENT_TOOL_RESULT,
    EVENT_TOOL_START,
    EventSink,
    emit,
    new_tool_call_id,
    tool_error_payload,
    tool_result_payload,
    tool_start_payload,
)
from cognitive.agent.prompt_builder import COMPLETION_MARKER, SystemPromptContext, build_system_prompt
from cognitive.agent.stream_handler import StreamHandler
from cognitive.agent.tool_call_extractor import ToolCallExtractor, get_tool_call_extractor
from cognitive.codebase.indexer import SymbolIndex
from cognitive.core.errors import ToolError
from cognitive.providers.base import BaseProvider, Message
from cognitive.providers.registry import ProviderRegistry
from cognitive.tools.base import ToolCall
from cognitive.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

def nudge_message(marker: str = COMPLETION_MARKER) -> str:
    return (
        f"Your response did not include any tool calls or a {marker}. "
        f"If you are finished, please provide the {marker}. "
        "If not, please use the appropriate tool to proceed."
    )


NUDGE_MESSAGE = nudge_message()

FILE_SEARCH_TOOLS = frozenset({"search_files", "find_by_name"})

STOP_COMPLETED = "completed"
STOP_MAX_ITERATIONS = "max_iterations"

ProviderFactory = Callable[[str], BaseProvider]


class TurnState(Enum):
    COMPOSING = "composing"
    STREAMING = "streaming"
    PARSING = "parsing"
    NO_ACTION = "no_action"
    EXECUTING = "executing"
    DONE = "done"


@dataclass
class TurnResult:
    """Outcome of ``AgentOrchestrator.run_turn``."""

    final_text: str
    iterations: int
    stop_reason: str
    messages: List[Message] = field(default_factory=list)


def truncate_result(result: str, limit: int) -> str:
    """Cap a tool result for the model's context."""
    if len(result) <= limit:
        return result
    return f"{result[:limit]}... (truncated, total length: {len(result)})"


def format_tool_output(tool_name: str, result: str, max_listed_symbols: int = 15) -> str:
    """Rewrite JSON results of search tools into short readable text.

    Results that do not decode as a JSON list are returned unchanged.
    """
    if tool_name not in FILE_SEARCH_TOOLS and tool_name != "search_codebase":
        return result
    try:
        items = json.loads(result)
    except ValueError:
        return result
    if not isinstance(items, list):
        return result

    if tool_name in FILE_SEARCH_TOOLS:
        if not items:
            return "No files found matching the pattern."
        paths = [
            item["path"]
            for item in items
            if isinstance(item, dict) and isinstance(item.get("path"), str)
        ]
        return "Found files:\n" + "\n".join(paths)

    if not items:
        return "No symbols found matching the query."
    lines = []
    for item in items[:max_listed_symbols]:
        item = item if isinstance(item, dict) else {}
        line = item.get("start_line")
        lines.append(
            f"{item.get('name', '?')} ({item.get('kind', '?')}) in "
            f"{item.get('file_path', '?')} (line {line if isinstance(line, int) else 0})"
        )
    return "Found symbols:\n" + "\n".join(lines)


def combine_tool_outputs(outputs: List[str]) -> str:
    joined = "\n\n".join(outputs)
    return f"Tool execution results:\n{joined}\n\nPlease analyze these results and take the next step."


class AgentOrchestrator:
    """Runs one chat turn against the model with tool support.

    Example:
        orchestrator = AgentOrchestrator(context, event_sink=print)
        result = await orchestrator.run_turn([Message(role="user", content="Where is login?")])
    """

    def __init__(
        self,
        context: AgentContext,
        event_sink: EventSink,
        provider_factory: Optional[ProviderFactory] = None,
        executor: Optional[ToolExecutor] = None,
        symbol_index: Optional[SymbolIndex] = None,
        extractor: Optional[ToolCallExtractor] = None,
    ):
        """Initialize orchestrator.

        Args:
            context: Immutable settings/workspace snapshot for this turn
            event_sink: Receives chunk and tool events; exceptions abort the turn
            provider_factory: Maps a model name to a provider (defaults to a ProviderRegistry)
            executor: Tool executor (built from the context when omitted)
            symbol_index: Shared symbol index used by a default executor
            extractor: Tool-call parser
        """
        self.context = context
        self.settings = context.settings
        self.event_sink = event_sink
        self._registry: Optional[ProviderRegistry] = None
        if provider_factory is None:
            self._registry = ProviderRegistry(self.settings)
            provider_factory = self._registry.get
        self.provider_factory = provider_factory
        self.executor = executor or ToolExecutor(
            context.workspace,
            symbol_index or SymbolIndex(settings=self.settings),
            settings=self.settings,
        )
        self.extractor = extractor or get_tool_call_extractor()
        self.debug_logger = DebugLogger()
        self.state = TurnState.COMPOSING

    def _transition(self, state: TurnState) -> None:
        logger.debug(f"Turn state: {self.state.value} -> {state.value}")
        self.state = state

    def _emit(self, event_type: str, payload: Any) -> None:
        emit(self.event_sink, event_type, payload)

    def build_system_prompt(self, messages: List[Message]) -> str:
        workspace = str(self.context.workspace) if self.context.workspace else None
        return build_system_prompt(
            SystemPromptContext(
                user_os=self.context.os_name,
                workspace=workspace,
                user_query=last_user_content(messages),
                completion_marker=self.settings.completion_marker,
            )
        )

    async def run_turn(self, messages: List[Message], model: Optional[str] = None) -> TurnResult:
        """Run the loop until completion or the iteration cap.

        Args:
            messages: Prior conversation (user/assistant messages)
            model: Model name (defaults to settings.default_model)

        Raises:
            ProviderError: The model backend failed
            EventEmissionError: The event sink failed
        """
        model = model or self.settings.default_model
        max_iterations = self.settings.max_iterations
        conversation = ConversationManager(self.build_system_prompt(messages), messages)
        self.debug_logger.reset()
        self.state = TurnState.COMPOSING

        final_text = ""
        iteration = 0
        stop_reason = STOP_MAX_ITERATIONS
        try:
            while iteration < max_iterations:
                iteration += 1
                self.debug_logger.log_iteration_start(iteration, max_iterations)

                self._transition(TurnState.STREAMING)
                final_text = await self._stream_reply(conversation.messages, model)
                conversation.add_assistant_message(final_text)

                self._transition(TurnState.PARSING)
                calls = self.extractor.extract(final_text)
                self.debug_logger.log_model_response(final_text, len(calls))

                if not calls:
                    self._transition(TurnState.NO_ACTION)
                    if self.settings.completion_marker in final_text:
                        stop_reason = STOP_COMPLETED
                        break
                    if iteration < max_iterations:
                        conversation.add_user_message(nudge_message(self.settings.completion_marker))
                    self._transition(TurnState.COMPOSING)
                    continue

                self._transition(TurnState.EXECUTING)
                outputs = [await self._run_tool(call) for call in calls]
                conversation.add_user_message(combine_tool_outputs(outputs))
                self._transition(TurnState.COMPOSING)
        finally:
            if self._registry is not None:
                await self._registry.close()

        self._transition(TurnState.DONE)
        history = conversation.messages
        self.debug_logger.log_turn_summary(history, stop_reason)
        return TurnResult(
            final_text=final_text,
            iterations=iteration,
            stop_reason=stop_reason,
            messages=history,
        )

    async def _stream_reply(self, messages: List[Message], model: str) -> str:
        provider = self.provider_factory(model)
        handler = StreamHandler(on_content=lambda delta: self._emit(EVENT_CHUNK, delta))
        result = await handler.process_stream(
            provider.stream(
                messages,
                model=model,
                temperature=self.settings.default_temperature,
                max_tokens=self.settings.default_max_tokens,
            )
        )
        return result.content

    async def _run_tool(self, call: ToolCall) -> str:
        """Execute one call, emit its events and return its history text."""
        call_id = new_tool_call_id()
        self._emit(EVENT_TOOL_START, tool_start_payload(call_id, call.name, call.parameters))
        self.debug_logger.log_tool_call(call.name, call.parameters)

        start = time.time()
        try:
            result = await self.executor.execute(call)
        except ToolError as e:
            message = str(e)
            self.debug_logger.log_tool_result(call.name, False, message, (time.time() - start) * 1000)
            self._emit(EVENT_TOOL_ERROR, tool_error_payload(call_id, call.name, message))
            return f"Tool '{call.name}' error: {message}"

        self.debug_logger.log_tool_result(call.name, True, result, (time.time() - start) * 1000)
        self._emit(EVENT_TOOL_RESULT, tool_result_payload(call_id, call.name, result))

        history_result = truncate_result(result, self.settings.max_tool_result_chars)
        formatted = format_tool_output(call.name, history_result, self.settings.max_listed_symbols)
        return f"[{call.name}] result:\n{formatted}"
