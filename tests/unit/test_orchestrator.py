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

"""Tests for the agent orchestrator turn loop."""

import json

import pytest

from cognitive.agent.context import AgentContext
from cognitive.agent.events import (
    EVENT_CHUNK,
    EVENT_TOOL_ERROR,
    EVENT_TOOL_RESULT,
    EVENT_TOOL_START,
    EventCollector,
)
from cognitive.agent.orchestrator import (
    NUDGE_MESSAGE,
    STOP_COMPLETED,
    STOP_MAX_ITERATIONS,
    AgentOrchestrator,
    TurnState,
    combine_tool_outputs,
    format_tool_output,
    nudge_message,
    truncate_result,
)
from cognitive.config.settings import Settings
from cognitive.core.errors import EventEmissionError, ProviderRequestError
from cognitive.providers.base import Message

FINAL = "All done.\n## FINAL ANSWER\nSave lives in src/store.py."


class ScriptedProvider:
    """Streams canned replies in small chunks and records each request."""

    def __init__(self, replies, chunk_size=7):
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.requests = []

    async def stream(self, messages, model, temperature=None, max_tokens=None):
        self.requests.append({"messages": list(messages), "model": model, "max_tokens": max_tokens})
        reply = self.replies.pop(0) if self.replies else "thinking..."
        if isinstance(reply, Exception):
            raise reply
        for i in range(0, len(reply), self.chunk_size):
            yield reply[i : i + self.chunk_size]


def make_orchestrator(workspace, replies, sink=None, **settings_overrides):
    settings = Settings(index_workers=1, **settings_overrides)
    context = AgentContext(settings=settings, workspace=workspace, os_name="linux")
    provider = ScriptedProvider(replies)
    models = []

    def factory(model):
        models.append(model)
        return provider

    orchestrator = AgentOrchestrator(context, sink or EventCollector(), provider_factory=factory)
    return orchestrator, provider, models


def user(content):
    return Message(role="user", content=content)


class TestTurnLoop:
    """Tests for loop termination and history shape."""

    @pytest.mark.asyncio
    async def test_completion_marker_ends_turn(self, workspace):
        sink = EventCollector()
        orchestrator, provider, _ = make_orchestrator(workspace, [FINAL], sink=sink)

        result = await orchestrator.run_turn([user("Where is save?")])

        assert result.stop_reason == STOP_COMPLETED
        assert result.iterations == 1
        assert result.final_text == FINAL
        assert [m.role for m in result.messages] == ["system", "user", "assistant"]
        assert "".join(e.payload for e in sink.of_type(EVENT_CHUNK)) == FINAL
        assert orchestrator.state is TurnState.DONE

    @pytest.mark.asyncio
    async def test_iteration_cap_and_nudges(self, workspace):
        orchestrator, provider, _ = make_orchestrator(workspace, [], max_iterations=3)

        result = await orchestrator.run_turn([user("hello")])

        assert result.stop_reason == STOP_MAX_ITERATIONS
        assert result.iterations == 3
        assert len(provider.requests) == 3
        assert [m.content for m in result.messages if m.content == NUDGE_MESSAGE] == [NUDGE_MESSAGE] * 2
        assert result.messages[-1].role == "assistant"

    @pytest.mark.asyncio
    async def test_system_prompt_first(self, workspace):
        orchestrator, provider, _ = make_orchestrator(workspace, [FINAL])

        await orchestrator.run_turn(
            [Message(role="system", content="ignored"), user("Find the login handler")]
        )

        sent = provider.requests[0]["messages"]
        assert sent[0].role == "system"
        assert f"- Workspace: {workspace}" in sent[0].content
        assert "- Current request: Find the login handler" in sent[0].content
        assert all(m.content != "ignored" for m in sent)

    @pytest.mark.asyncio
    async def test_model_and_settings_forwarded(self, workspace):
        orchestrator, provider, models = make_orchestrator(
            workspace, [FINAL], default_model="gemini-1.5-flash", default_max_tokens=256
        )

        await orchestrator.run_turn([user("hi")])

        assert models == ["gemini-1.5-flash"]
        assert provider.requests[0]["model"] == "gemini-1.5-flash"
        assert provider.requests[0]["max_tokens"] == 256

    @pytest.mark.asyncio
    async def test_custom_completion_marker(self, workspace):
        reply = "Checked.\nRESULT:\nSave lives in src/store.py."
        orchestrator, provider, _ = make_orchestrator(
            workspace, ["thinking", reply], completion_marker="RESULT:"
        )

        result = await orchestrator.run_turn([user("where is save?")])

        assert result.stop_reason == STOP_COMPLETED
        assert result.iterations == 2
        system_prompt = provider.requests[0]["messages"][0].content
        assert "`RESULT:`" in system_prompt
        assert "## FINAL ANSWER" not in system_prompt
        nudge = provider.requests[1]["messages"][-1].content
        assert nudge == nudge_message("RESULT:")
        assert "## FINAL ANSWER" not in nudge


class TestToolExecution:
    """Tests for tool calls inside a turn."""

    @pytest.mark.asyncio
    async def test_tool_result_fed_back(self, workspace):
        sink = EventCollector()
        reply = 'Reading.\n<read_file path="src/store.py" start_line="1" end_line="1" />'
        orchestrator, provider, _ = make_orchestrator(workspace, [reply, FINAL], sink=sink)

        result = await orchestrator.run_turn([user("show the class")])

        assert result.iterations == 2
        assert result.stop_reason == STOP_COMPLETED
        feedback = provider.requests[1]["messages"][-1]
        assert feedback.role == "user"
        assert feedback.content == combine_tool_outputs(["[read_file] result:\nclass Store:"])

        start = sink.of_type(EVENT_TOOL_START)[0].payload
        done = sink.of_type(EVENT_TOOL_RESULT)[0].payload
        assert start["name"] == "read_file"
        assert start["parameters"] == {"path": "src/store.py", "start_line": 1, "end_line": 1}
        assert start["status"] == "executing"
        assert isinstance(start["timestamp"], int)
        assert done == {
            "id": start["id"],
            "name": "read_file",
            "result": "class Store:",
            "status": "completed",
        }

    @pytest.mark.asyncio
    async def test_tool_error_reported_and_turn_continues(self, workspace):
        sink = EventCollector()
        orchestrator, provider, _ = make_orchestrator(
            workspace, ['<read_file path="missing.py" />', FINAL], sink=sink
        )

        result = await orchestrator.run_turn([user("read it")])

        assert result.stop_reason == STOP_COMPLETED
        error = sink.of_type(EVENT_TOOL_ERROR)[0].payload
        assert error["status"] == "error"
        assert error["error"].startswith("File not found: ")
        feedback = provider.requests[1]["messages"][-1].content
        assert "Tool 'read_file' error: File not found: " in feedback

    @pytest.mark.asyncio
    async def test_unusable_path_reported_and_turn_continues(self, workspace):
        sink = EventCollector()
        orchestrator, provider, _ = make_orchestrator(
            workspace, ['<read_file path="a&#0;b" />', FINAL], sink=sink
        )

        result = await orchestrator.run_turn([user("read it")])

        assert result.stop_reason == STOP_COMPLETED
        error = sink.of_type(EVENT_TOOL_ERROR)[0].payload
        assert error["name"] == "read_file"
        assert "Tool 'read_file' error: " in provider.requests[1]["messages"][-1].content

    @pytest.mark.asyncio
    async def test_multiple_calls_combined_into_one_message(self, workspace):
        reply = '<todo_add content="first" />\n<todo_add content="second" />'
        orchestrator, provider, _ = make_orchestrator(workspace, [reply, FINAL])

        result = await orchestrator.run_turn([user("plan")])

        assert [m.role for m in result.messages] == ["system", "user", "assistant", "user", "assistant"]
        feedback = result.messages[3].content
        assert "[todo_add] result:\nAdded todo: first" in feedback
        assert "[todo_add] result:\nAdded todo: second" in feedback

    @pytest.mark.asyncio
    async def test_marker_with_tool_calls_keeps_going(self, workspace):
        reply = '<todo_list />\n## FINAL ANSWER\nnothing yet'
        orchestrator, provider, _ = make_orchestrator(workspace, [reply, FINAL])

        result = await orchestrator.run_turn([user("todos?")])

        assert result.iterations == 2
        assert result.final_text == FINAL

    @pytest.mark.asyncio
    async def test_large_result_truncated_for_history(self, workspace):
        (workspace / "big.txt").write_text("x" * 50)
        sink = EventCollector()
        orchestrator, provider, _ = make_orchestrator(
            workspace, ['<read_file path="big.txt" />', FINAL], sink=sink, max_tool_result_chars=10
        )

        await orchestrator.run_turn([user("read")])

        assert sink.of_type(EVENT_TOOL_RESULT)[0].payload["result"] == "x" * 50
        feedback = provider.requests[1]["messages"][-1].content
        assert "xxxxxxxxxx... (truncated, total length: 50)" in feedback


class TestFailures:
    """Provider and sink failures end the turn."""

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, workspace):
        orchestrator, _, _ = make_orchestrator(
            workspace, [ProviderRequestError("connection refused", provider="ollama")]
        )
        with pytest.raises(ProviderRequestError):
            await orchestrator.run_turn([user("hi")])

    @pytest.mark.asyncio
    async def test_sink_failure_propagates(self, workspace):
        def broken_sink(event):
            raise RuntimeError("host window closed")

        orchestrator, _, _ = make_orchestrator(workspace, [FINAL], sink=broken_sink)
        with pytest.raises(EventEmissionError) as exc_info:
            await orchestrator.run_turn([user("hi")])
        assert exc_info.value.event_type == EVENT_CHUNK


class TestResultFormatting:
    """Tests for history-side rewriting of tool results."""

    def test_truncate(self):
        assert truncate_result("abcdef", 10) == "abcdef"
        assert truncate_result("abcdef", 3) == "abc... (truncated, total length: 6)"

    def test_found_files(self):
        result = json.dumps([{"name": "a.py", "path": "/w/a.py"}, {"name": "b.py", "path": "/w/b.py"}])
        assert format_tool_output("find_by_name", result) == "Found files:\n/w/a.py\n/w/b.py"
        assert format_tool_output("search_files", "[]") == "No files found matching the pattern."

    def test_found_symbols_capped(self):
        symbols = [
            {"name": f"fn{i}", "kind": "Function", "file_path": "src/a.py", "start_line": i}
            for i in range(20)
        ]
        text = format_tool_output("search_codebase", json.dumps(symbols), max_listed_symbols=15)
        lines = text.splitlines()
        assert lines[0] == "Found symbols:"
        assert lines[1] == "fn0 (Function) in src/a.py (line 0)"
        assert len(lines) == 16
        assert format_tool_output("search_codebase", "[]") == "No symbols found matching the query."

    def test_other_results_unchanged(self):
        assert format_tool_output("grep", "[]") == "[]"
        assert format_tool_output("search_codebase", "oops... (truncated") == "oops... (truncated"

    def test_combine(self):
        assert combine_tool_outputs(["a", "b"]) == (
            "Tool execution results:\na\n\nb\n\nPlease analyze these results and take the next step."
        )
