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

"""Tool call extraction from model output.

Models do not reliably emit one canonical tool-call format, so the text is
run through an ordered pipeline of independent extractors:

1. Block invoke XML:
       <invoke name="read_file"><parameter name="path">src/main.rs</parameter></invoke>
2. Compact tags named after an allowed tool:
       <read_file path="src/main.rs" />
3. Embedded JSON objects:
       {"name": "read_file", "parameters": {"path": "src/main.rs"}}
       {"tool": "read_file", "args": {"path": "src/main.rs"}}
       {"tool_call": {"name": "read_file", "parameters": {...}}}
4. Legacy line directive:
       tool_call: {"name": "read_file", "parameters": {"path": "src/main.rs"}}

Every extractor yields candidates tagged with their offset in the text. The
merged result is ordered by offset (pipeline order breaks ties), restricted
to the allow-list and deduplicated on name plus canonical parameters.
Malformed fragments are skipped; extraction never raises.

Example:
    extractor = ToolCallExtractor()
    calls = extractor.extract('<read_file path="src/main.rs" />')
    # [ToolCall(name="read_file", parameters={"path": "src/main.rs"})]
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from cognitive.core.errors import ToolCallParseError
from cognitive.tools.base import ToolCall, is_allowed_tool

logger = logging.getLogger(__name__)


_ENTITY_PATTERN = re.compile(r"&(#[xX][0-9a-fA-F]+|#[0-9]+|lt|gt|amp|quot|apos);")
_NAMED_ENTITIES = {"lt": "<", "gt": ">", "amp": "&", "quot": '"', "apos": "'"}
_CDATA_PATTERN = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_INT_PATTERN = re.compile(r"[+-]?\d+")
_FLOAT_PATTERN = re.compile(r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")


def _replace_entity(match: "re.Match[str]") -> str:
    entity = match.group(1)
    if entity[0] != "#":
        return _NAMED_ENTITIES[entity]
    try:
        code = int(entity[2:], 16) if entity[1] in "xX" else int(entity[1:])
        return chr(code)
    except (ValueError, OverflowError):
        return match.group(0)


def unescape_xml(value: str) -> str:
    """Decode XML entities in one pass (``&amp;lt;`` becomes ``&lt;``)."""
    return _ENTITY_PATTERN.sub(_replace_entity, value)


def decode_xml_text(raw: str) -> str:
    """Decode element text: CDATA sections verbatim, entities elsewhere."""
    parts: List[str] = []
    pos = 0
    for match in _CDATA_PATTERN.finditer(raw):
        parts.append(unescape_xml(raw[pos : match.start()]))
        parts.append(match.group(1))
        pos = match.end()
    parts.append(unescape_xml(raw[pos:]))
    return "".join(parts)


def coerce_scalar(value: str) -> Any:
    """Coerce a textual value: booleans, integers, floats, else the trimmed string."""
    text = value.strip()
    if text == "true":
        return True
    if text == "false":
        return False
    if _INT_PATTERN.fullmatch(text):
        return int(text)
    if _FLOAT_PATTERN.fullmatch(text):
        return float(text)
    return text


def xml_tool_call(name: str, values: List[Tuple[str, str]]) -> ToolCall:
    """Build a call from decoded XML values, keeping each value's source text."""
    parameters: Dict[str, Any] = {}
    raw_text: Dict[str, str] = {}
    for key, value in values:
        text = value.strip()
        parameters[key] = coerce_scalar(text)
        raw_text[key] = text
    return ToolCall(name=name, parameters=parameters, raw_text=raw_text)


@dataclass(frozen=True)
class ToolCallCandidate:
    """A tool call found at ``offset`` by the extractor at ``priority``."""

    offset: int
    priority: int
    call: ToolCall


class ToolCallFormatExtractor(ABC):
    """One textual encoding of tool calls."""

    name: str = "base"

    @abstractmethod
    def extract(self, text: str) -> Iterator[Tuple[int, ToolCall]]:
        """Yield ``(offset, call)`` pairs for every call found in ``text``."""


class InvokeBlockExtractor(ToolCallFormatExtractor):
    """``<invoke name="X"><parameter name="P">value</parameter></invoke>``."""

    name = "invoke"

    INVOKE_PATTERN = re.compile(
        r"<invoke\s+name\s*=\s*([\"'])(?P<name>.*?)\1\s*>(?P<body>.*?)</invoke\s*>",
        re.DOTALL,
    )
    PARAMETER_PATTERN = re.compile(
        r"<parameter\s+name\s*=\s*([\"'])(?P<name>.*?)\1\s*>(?P<value>.*?)</parameter\s*>",
        re.DOTALL,
    )

    def extract(self, text: str) -> Iterator[Tuple[int, ToolCall]]:
        for match in self.INVOKE_PATTERN.finditer(text):
            tool_name = unescape_xml(match.group("name")).strip()
            if not is_allowed_tool(tool_name):
                continue
            values: List[Tuple[str, str]] = []
            for param in self.PARAMETER_PATTERN.finditer(match.group("body")):
                key = unescape_xml(param.group("name")).strip()
                if key:
                    values.append((key, decode_xml_text(param.group("value"))))
            yield match.start(), xml_tool_call(tool_name, values)


class CompactTagExtractor(ToolCallFormatExtractor):
    """``<tool_name attr="value" />``, recognized only for allowed tool names."""

    name = "compact"

    TAG_PATTERN = re.compile(
        r"<(?P<name>[A-Za-z_][\w.-]*)"
        r"(?P<attrs>(?:\s+[\w:.-]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*)"
        r"\s*/?>"
    )
    ATTR_PATTERN = re.compile(r"([\w:.-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")

    def extract(self, text: str) -> Iterator[Tuple[int, ToolCall]]:
        for match in self.TAG_PATTERN.finditer(text):
            tool_name = match.group("name")
            if not is_allowed_tool(tool_name):
                continue
            values: List[Tuple[str, str]] = []
            for attr in self.ATTR_PATTERN.finditer(match.group("attrs")):
                raw = attr.group(2) if attr.group(2) is not None else attr.group(3)
                values.append((attr.group(1), unescape_xml(raw)))
            yield match.start(), xml_tool_call(tool_name, values)


def json_parameters(value: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    """Parameter object under ``key``; an explicit ``null`` means no parameters."""
    if key not in value:
        return None
    params = value[key]
    if params is None:
        return {}
    return params if isinstance(params, dict) else None


def tool_call_from_json(value: Any) -> Optional[ToolCall]:
    """Interpret a decoded JSON value as a tool call.

    Accepted shapes: ``{name, parameters}``, ``{tool, args}`` and
    ``{tool_call: {...}}`` (unwrapped recursively).

    Raises:
        ToolCallParseError: If the value is not a recognizable allowed call
    """
    if not isinstance(value, dict):
        raise ToolCallParseError("JSON value is not an object")

    for name_key, params_key in (("name", "parameters"), ("tool", "args")):
        name = value.get(name_key)
        params = json_parameters(value, params_key)
        if is_allowed_tool(name) and params is not None:
            return ToolCall(name=name, parameters=params)

    if "tool_call" in value:
        return tool_call_from_json(value["tool_call"])

    raise ToolCallParseError("JSON object has no allowed tool call shape")


class EmbeddedJSONExtractor(ToolCallFormatExtractor):
    """JSON objects anywhere in the text.

    Every ``{`` is a candidate start; ``raw_decode`` finds the matching end of
    the value. Starts inside an already recognized call are skipped, so two
    adjacent objects are read as two calls and a call's own ``parameters``
    object is never re-read on its own.
    """

    name = "json"

    def __init__(self) -> None:
        self._decoder = json.JSONDecoder()

    def extract(self, text: str) -> Iterator[Tuple[int, ToolCall]]:
        consumed_until = 0
        start = text.find("{")
        while start != -1:
            if start >= consumed_until:
                try:
                    value, end = self._decoder.raw_decode(text, start)
                    call = tool_call_from_json(value)
                except (json.JSONDecodeError, ToolCallParseError) as e:
                    logger.debug(f"No JSON tool call at offset {start}: {e}")
                else:
                    consumed_until = end
                    yield start, call
            start = text.find("{", start + 1)


class LegacyLineExtractor(ToolCallFormatExtractor):
    """``tool_call: {json}`` at the start of a line."""

    name = "legacy"

    PREFIX = "tool_call: "

    def extract(self, text: str) -> Iterator[Tuple[int, ToolCall]]:
        offset = 0
        for line in text.splitlines(keepends=True):
            if line.startswith(self.PREFIX):
                try:
                    value = json.loads(line[len(self.PREFIX) :])
                    if not isinstance(value, dict):
                        raise ToolCallParseError("Legacy tool_call is not an object")
                    name = value.get("name")
                    params = json_parameters(value, "parameters")
                    if not is_allowed_tool(name) or params is None:
                        raise ToolCallParseError("Legacy tool_call has no allowed tool")
                except (json.JSONDecodeError, ToolCallParseError) as e:
                    logger.debug(f"Skipping legacy tool_call line: {e}")
                else:
                    yield offset, ToolCall(name=name, parameters=params)
            offset += len(line)


DEFAULT_EXTRACTORS: Tuple[ToolCallFormatExtractor, ...] = (
    InvokeBlockExtractor(),
    CompactTagExtractor(),
    EmbeddedJSONExtractor(),
    LegacyLineExtractor(),
)


class ToolCallExtractor:
    """Runs every format extractor over the same text and merges the results."""

    def __init__(self, extractors: Optional[Sequence[ToolCallFormatExtractor]] = None):
        """Initialize the extractor.

        Args:
            extractors: Format extractors in priority order (defaults to all four)
        """
        self.extractors: Tuple[ToolCallFormatExtractor, ...] = tuple(
            extractors if extractors is not None else DEFAULT_EXTRACTORS
        )

    def candidates(self, text: str) -> List[ToolCallCandidate]:
        """Collect raw candidates from every extractor, sorted by position."""
        found: List[ToolCallCandidate] = []
        for priority, extractor in enumerate(self.extractors):
            try:
                for offset, call in extractor.extract(text):
                    found.append(ToolCallCandidate(offset, priority, call))
            except Exception as e:
                # A broken extractor must not hide calls found by the others
                logger.warning(f"Tool call extractor '{extractor.name}' failed: {e}")
        found.sort(key=lambda c: (c.offset, c.priority))
        return found

    def extract(self, text: str) -> List[ToolCall]:
        """Extract allowed, deduplicated tool calls in order of appearance."""
        if not text:
            return []

        calls: List[ToolCall] = []
        seen: Set[Tuple[str, str]] = set()
        for candidate in self.candidates(text):
            call = candidate.call
            if not is_allowed_tool(call.name):
                continue
            key = call.dedup_key()
            if key in seen:
                continue
            seen.add(key)
            calls.append(call)

        if calls:
            logger.debug(f"[ToolCallExtractor] Extracted {[c.name for c in calls]}")
        return calls


# Global instance
_extractor: Optional[ToolCallExtractor] = None


def get_tool_call_extractor() -> ToolCallExtractor:
    """Get the shared extractor instance."""
    global _extractor
    if _extractor is None:
        _extractor = ToolCallExtractor()
    return _extractor


def parse_tool_calls(text: str) -> List[ToolCall]:
    """Convenience wrapper around the shared extractor."""
    return get_tool_call_extractor().extract(text)
