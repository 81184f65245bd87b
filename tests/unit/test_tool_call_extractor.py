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

"""Tests for agent/tool_call_extractor module."""

from cognitive.agent.tool_call_extractor import (
    CompactTagExtractor,
    ToolCallExtractor,
    coerce_scalar,
    decode_xml_text,
    parse_tool_calls,
    unescape_xml,
)


class TestScalarHelpers:
    """Tests for entity decoding and scalar coercion."""

    def test_unescape_named_entities(self):
        assert unescape_xml("a &lt; b &amp;&amp; c &gt; d") == "a < b && c > d"

    def test_unescape_numeric_entities(self):
        assert unescape_xml("&#65;&#x42;") == "AB"

    def test_unescape_is_single_pass(self):
        assert unescape_xml("&amp;lt;") == "&lt;"

    def test_cdata_kept_verbatim(self):
        assert decode_xml_text("x &amp; <![CDATA[<b> &amp;]]>") == "x & <b> &amp;"

    def test_coerce_scalar(self):
        assert coerce_scalar("true") is True
        assert coerce_scalar("false") is False
        assert coerce_scalar(" 42 ") == 42
        assert coerce_scalar("-3") == -3
        assert coerce_scalar("2.5") == 2.5
        assert coerce_scalar("  src/main.rs ") == "src/main.rs"


class TestFormats:
    """Each encoding of the same call yields the same ToolCall."""

    EXPECTED = {"path": "src/main.rs", "start_line": 10}

    def _single(self, text):
        calls = parse_tool_calls(text)
        assert len(calls) == 1
        assert calls[0].name == "read_file"
        return calls[0]

    def test_invoke_block(self):
        text = (
            '<invoke name="read_file">\n'
            '  <parameter name="path">src/main.rs</parameter>\n'
            '  <parameter name="start_line">10</parameter>\n'
            "</invoke>"
        )
        assert self._single(text).parameters == self.EXPECTED

    def test_compact_tag(self):
        call = self._single('<read_file path="src/main.rs" start_line="10" />')
        assert call.parameters == self.EXPECTED

    def test_compact_tag_single_quotes(self):
        call = self._single("<read_file path='src/main.rs' start_line='10'/>")
        assert call.parameters == self.EXPECTED

    def test_embedded_json_name_parameters(self):
        text = 'Let me look. {"name": "read_file", "parameters": {"path": "src/main.rs", "start_line": 10}}'
        assert self._single(text).parameters == self.EXPECTED

    def test_embedded_json_tool_args(self):
        text = '{"tool": "read_file", "args": {"path": "src/main.rs", "start_line": 10}}'
        assert self._single(text).parameters == self.EXPECTED

    def test_embedded_json_wrapped(self):
        text = '{"tool_call": {"name": "read_file", "parameters": {"path": "src/main.rs", "start_line": 10}}}'
        assert self._single(text).parameters == self.EXPECTED

    def test_legacy_line(self):
        text = 'thinking\ntool_call: {"name": "read_file", "parameters": {"path": "src/main.rs", "start_line": 10}}\n'
        assert self._single(text).parameters == self.EXPECTED

    def test_source_text_kept_for_xml_values(self):
        call = self._single('<read_file path="007" start_line="10" />')
        assert call.parameters == {"path": 7, "start_line": 10}
        assert call.raw_text == {"path": "007", "start_line": "10"}

    def test_json_values_have_no_source_text(self):
        text = '{"name": "read_file", "parameters": {"path": "src/main.rs", "start_line": 10}}'
        assert self._single(text).raw_text == {}


class TestNullParameters:
    """An explicit null parameter object means no parameters."""

    def test_name_parameters_null(self):
        calls = parse_tool_calls('{"name": "todo_list", "parameters": null}')
        assert [(c.name, c.parameters) for c in calls] == [("todo_list", {})]

    def test_tool_args_null(self):
        calls = parse_tool_calls('{"tool": "todo_list", "args": null}')
        assert [(c.name, c.parameters) for c in calls] == [("todo_list", {})]

    def test_legacy_line_null(self):
        calls = parse_tool_calls('tool_call: {"name": "todo_list", "parameters": null}\n')
        assert [(c.name, c.parameters) for c in calls] == [("todo_list", {})]

    def test_missing_or_non_object_parameters_rejected(self):
        assert parse_tool_calls('{"name": "todo_list"}') == []
        assert parse_tool_calls('{"name": "todo_list", "parameters": "none"}') == []


class TestEntitiesAndCdata:
    """XML value decoding inside tool calls."""

    def test_entities_in_invoke_parameter(self):
        text = (
            '<invoke name="write_file">'
            '<parameter name="path">a.ts</parameter>'
            '<parameter name="content">if (a &lt; b &amp;&amp; c) {}</parameter>'
            "</invoke>"
        )
        calls = parse_tool_calls(text)
        assert calls[0].parameters["content"] == "if (a < b && c) {}"

    def test_entities_in_compact_attribute(self):
        calls = parse_tool_calls('<search query="a &quot;b&quot; &lt;c&gt;" />')
        assert calls[0].parameters == {"query": 'a "b" <c>'}

    def test_cdata_content(self):
        text = (
            '<invoke name="write_file">'
            '<parameter name="path">x.html</parameter>'
            '<parameter name="content"><![CDATA[<p>&amp;</p>]]></parameter>'
            "</invoke>"
        )
        calls = parse_tool_calls(text)
        assert calls[0].parameters["content"] == "<p>&amp;</p>"


class TestOrderingAndFiltering:
    """Merged output ordering, dedup and allow-list."""

    def test_mixed_formats_in_text_order(self):
        text = (
            '{"name": "list_dir", "parameters": {"path": "src"}}\n'
            '<read_file path="a.py" />\n'
            '<invoke name="search_codebase"><parameter name="query">login</parameter></invoke>'
        )
        names = [c.name for c in parse_tool_calls(text)]
        assert names == ["list_dir", "read_file", "search_codebase"]

    def test_duplicates_removed_across_formats(self):
        text = (
            '<read_file path="a.py" />\n'
            '{"name": "read_file", "parameters": {"path": "a.py"}}\n'
            '<read_file path="a.py" />'
        )
        calls = parse_tool_calls(text)
        assert len(calls) == 1

    def test_same_tool_different_parameters_kept(self):
        calls = parse_tool_calls('<read_file path="a.py" /><read_file path="b.py" />')
        assert [c.parameters["path"] for c in calls] == ["a.py", "b.py"]

    def test_unknown_tools_ignored(self):
        text = (
            '<delete_everything path="/" />\n'
            '<invoke name="rm_rf"><parameter name="path">/</parameter></invoke>\n'
            '{"name": "shell", "parameters": {"cmd": "ls"}}\n'
            "<div class=\"x\" />"
        )
        assert parse_tool_calls(text) == []

    def test_adjacent_json_objects_both_found(self):
        text = (
            '{"name": "read_file", "parameters": {"path": "a.py"}}'
            '{"name": "read_file", "parameters": {"path": "b.py"}}'
        )
        calls = parse_tool_calls(text)
        assert [c.parameters["path"] for c in calls] == ["a.py", "b.py"]

    def test_malformed_json_skipped(self):
        text = '{"name": "read_file", "parameters": {"path": "a.py"} <list_dir path="src" />'
        calls = parse_tool_calls(text)
        assert [c.name for c in calls] == ["list_dir"]

    def test_empty_text(self):
        assert parse_tool_calls("") == []
        assert parse_tool_calls("## FINAL ANSWER\nDone.") == []

    def test_custom_extractor_set(self):
        extractor = ToolCallExtractor(extractors=[CompactTagExtractor()])
        text = '{"name": "list_dir", "parameters": {"path": "src"}} <todo_list />'
        assert [c.name for c in extractor.extract(text)] == ["todo_list"]
