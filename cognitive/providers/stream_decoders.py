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

"""Incremental decoders for streamed provider responses.

Each decoder is a small state machine fed raw byte chunks exactly as they
arrive from the socket. ``feed`` returns the text deltas completed by that
chunk; ``flush`` drains whatever is left once the stream ends. Chunk
boundaries may fall anywhere, including inside a multi-byte character.

Three wire formats are supported:
- NDJSON (Ollama): one JSON object per line, text in ``message.content``
- SSE (OpenAI-compatible): ``data: {...}`` lines, ``[DONE]`` terminator
- Streamed JSON array (Gemini): objects spanning arbitrary chunk boundaries
"""

import codecs
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional

from cognitive.core.errors import ProviderMalformedResponseError

logger = logging.getLogger(__name__)


class StreamDecoder(ABC):
    """Turns raw response bytes into text deltas."""

    @abstractmethod
    def feed(self, chunk: bytes) -> List[str]:
        """Consume one chunk and return the completed text deltas."""

    @abstractmethod
    def flush(self) -> List[str]:
        """Drain remaining buffered data at end of stream."""


class LineStreamDecoder(StreamDecoder):
    """Buffers bytes and hands each complete newline-terminated line to ``parse_line``.

    Partial trailing lines stay buffered until the next chunk. Lines are
    decoded as UTF-8 only once complete, so split characters are safe.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer.extend(chunk)
        deltas: List[str] = []
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            deltas.extend(self._decode_line(raw))
        return deltas

    def flush(self) -> List[str]:
        if not self._buffer:
            return []
        raw = bytes(self._buffer)
        self._buffer.clear()
        return self._decode_line(raw)

    def _decode_line(self, raw: bytes) -> List[str]:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return []
        text = self.parse_line(line)
        return [text] if text else []

    @abstractmethod
    def parse_line(self, line: str) -> Optional[str]:
        """Extract the text delta from one stripped, non-empty line."""


class NDJSONStreamDecoder(LineStreamDecoder):
    """Ollama ``/api/chat`` stream: ``{"message": {"content": "..."}}`` per line."""

    def parse_line(self, line: str) -> Optional[str]:
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping undecodable NDJSON line: {line[:100]}")
            return None
        if not isinstance(data, dict):
            return None
        message = data.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content
        return None


class SSEStreamDecoder(LineStreamDecoder):
    """OpenAI-style server-sent events carrying chat completion deltas."""

    DATA_PREFIX = "data: "
    DONE = "[DONE]"

    def parse_line(self, line: str) -> Optional[str]:
        if not line.startswith(self.DATA_PREFIX):
            return None
        data = line[len(self.DATA_PREFIX) :].strip()
        if data == self.DONE:
            return None
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping undecodable SSE event: {data[:100]}")
            return None
        try:
            content = event["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            return None
        return content if isinstance(content, str) else None


def extract_gemini_text(response: Any) -> List[str]:
    """Pull ``candidates[].content.parts[].text`` out of one or more responses.

    ``response`` may be a single response object or an array of them.
    """
    responses = response if isinstance(response, list) else [response]
    texts: List[str] = []
    for item in responses:
        if not isinstance(item, dict):
            continue
        for candidate in item.get("candidates") or []:
            if not isinstance(candidate, dict):
                continue
            content = candidate.get("content") or {}
            if not isinstance(content, dict):
                continue
            for part in content.get("parts") or []:
                if isinstance(part, dict) and isinstance(part.get("text"), str):
                    texts.append(part["text"])
    return texts


class JSONArrayStreamDecoder(StreamDecoder):
    """Bracket-depth state machine for a streamed JSON array of objects.

    The upstream sends ``[{...},{...}]`` in arbitrary slices. The decoder keeps
    a depth counter plus in-string and escape flags across chunks. Braces and
    brackets inside string literals never change depth. Whenever depth
    returns to zero a complete top-level value has been isolated; it is parsed
    as either one response object or an array of them and its text parts are
    returned. The opening ``[`` of the stream and its closing ``]`` act as an
    envelope, so each element is emitted as soon as it is complete.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._value: List[str] = []
        self._depth = 0
        self._in_string = False
        self._escaped = False
        self._envelope_open = False
        self._seen_value = False

    @property
    def depth(self) -> int:
        return self._depth

    def feed(self, chunk: bytes) -> List[str]:
        return self._consume(self._utf8.decode(chunk))

    def flush(self) -> List[str]:
        deltas = self._consume(self._utf8.decode(b"", final=True))
        if self._depth > 0:
            pending = "".join(self._value)
            self._reset_value()
            raise ProviderMalformedResponseError(
                f"Stream ended inside an unterminated JSON value: {pending[:100]}"
            )
        return deltas

    def _consume(self, text: Iterable[str]) -> List[str]:
        deltas: List[str] = []
        for ch in text:
            if self._depth == 0:
                self._between_values(ch)
                continue

            self._value.append(ch)
            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._depth += 1
            elif ch in "}]":
                self._depth -= 1
                if self._depth == 0:
                    deltas.extend(self._complete_value())
        return deltas

    def _between_values(self, ch: str) -> None:
        if ch == "[" and not self._envelope_open and not self._seen_value:
            self._envelope_open = True
            return
        if ch == "]" and self._envelope_open:
            self._envelope_open = False
            return
        if ch in "{[":
            self._value.append(ch)
            self._depth = 1
            self._seen_value = True
        # Whitespace, commas and stray characters between values are dropped

    def _complete_value(self) -> List[str]:
        raw = "".join(self._value)
        self._reset_value()
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(f"Skipping undecodable JSON value: {raw[:100]}")
            return []
        return extract_gemini_text(value)

    def _reset_value(self) -> None:
        self._value = []
        self._depth = 0
        self._in_string = False
        self._escaped = False
