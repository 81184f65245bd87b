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

"""Tests for prompt building, stream handling, events and conversation history."""

import pytest

from cognitive.agent.conversation import ConversationManager, last_user_content
from cognitive.agent.events import AgentEvent, EventCollector, emit
from cognitive.agent.prompt_builder import (
    SystemPromptContext,
    build_system_prompt,
    render_tool_catalogue,
)
from cognitive.agent.stream_handler import StreamHandler
from cognitive.core.errors import EventEmissionError
from cognitive.providers.base import Message
from cognitive.tools.base import ALLOWED_TOOLS


async def deltas(*parts):
    for part in parts:
        yield part


class TestPromptBuilder:
    """Tests for system prompt rendering."""

    def test_context_section(self):
        prompt = build_system_prompt(SystemPromptContext(user_os="darwin", workspace="/repo"))
        assert "- User OS: darwin" in prompt
        assert "- Workspace: /repo" in prompt
        assert "Current request" not in prompt
        assert "## FINAL ANSWER" in prompt

    def test_current_request_first_line_only(self):
        prompt = build_system_prompt(
            SystemPromptContext(user_os="linux", user_query="\nRename save\nand update callers")
        )
        assert "- Workspace: Unknown" in prompt
        assert "- Current request: Rename save\n" in prompt
        assert "and update callers" not in prompt

    def test_catalogue_lists_every_tool(self):
        catalogue = render_tool_catalogue()
        for name in ALLOWED_TOOLS:
            assert f"- {name}:" in catalogue


class TestStreamHandler:
    """Tests for StreamHandler."""

    @pytest.mark.asyncio
    async def test_accumulates_and_forwards(self):
        seen = []
        handler = StreamHandler(on_content=seen.append)
        result = await handler.process_stream(deltas("Hel", "", "lo"))
        assert result.content == "Hello"
        assert seen == ["Hel", "lo"]
        assert result.metrics.total_chunks == 2
        assert result.metrics.total_content_length == 5

    @pytest.mark.asyncio
    async def test_callback_errors_propagate(self):
        def fail(delta):
            raise RuntimeError("closed")

        with pytest.raises(RuntimeError):
            await StreamHandler(on_content=fail).process_stream(deltas("x"))


class TestEvents:
    """Tests for event emission."""

    def test_emit_records(self):
        sink = EventCollector()
        emit(sink, "chunk", "hi")
        assert sink.events == [AgentEvent("chunk", "hi")]
        assert sink.events[0].to_dict() == {"type": "chunk", "payload": "hi"}

    def test_sink_failure_wrapped(self):
        def sink(event):
            raise OSError("pipe closed")

        with pytest.raises(EventEmissionError) as exc_info:
            emit(sink, "agent-tool-res", {})
        assert isinstance(exc_info.value.cause, OSError)


class TestConversationManager:
    """Tests for ConversationManager."""

    def test_system_prompt_first_and_replaced(self):
        manager = ConversationManager(
            "prompt",
            [Message(role="system", content="old"), Message(role="user", content="hi")],
        )
        messages = manager.messages
        assert [(m.role, m.content) for m in messages] == [("system", "prompt"), ("user", "hi")]

    def test_append_and_copy(self):
        manager = ConversationManager("prompt")
        manager.add_assistant_message("a")
        manager.add_user_message("b")
        snapshot = manager.messages
        snapshot.clear()
        assert manager.message_count() == 3

    def test_last_user_content(self):
        messages = [
            Message(role="user", content="first"),
            Message(role="assistant", content="reply"),
            Message(role="user", content="second"),
        ]
        assert last_user_content(messages) == "second"
        assert last_user_content([]) is None
