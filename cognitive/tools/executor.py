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

"""Tool executor: runs one validated tool call against the workspace.

Every tool returns a string (plain text or a JSON document) that is fed back
to the model. Failures raise ``ToolError`` subclasses whose message is what
the model reads.
"""

import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Union

from cognitive.codebase.indexer import SymbolIndex
from cognitive.config.settings import Settings
from cognitive.core.errors import NoWorkspaceError, NotFoundError, ToolError, ToolIOError
from cognitive.tools.base import (
    FindByNameParams,
    ListDirParams,
    ReadFileParams,
    SearchCodebaseParams,
    SearchParams,
    TodoAddParams,
    TodoCompleteParams,
    ToolCall,
    ToolParams,
    WriteFileParams,
    parse_parameters,
)
from cognitive.tools.filesystem import FileSystem, LocalFileSystem, SearchOptions
from cognitive.tools.todo import TodoStore

logger = logging.getLogger(__name__)

EMPTY_RANGE_SENTINEL = "(Empty range or out of bounds)"

ToolHandler = Callable[[ToolParams], Awaitable[str]]


def split_lines(content: str) -> List[str]:
    """Split on ``\\n`` (dropping a trailing ``\\r``) without a final empty line."""
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def select_line_range(content: str, start_line: Optional[int], end_line: Optional[int]) -> str:
    """Return 1-based inclusive ``start_line..end_line`` of ``content``.

    Out-of-range or inverted ranges yield ``EMPTY_RANGE_SENTINEL``.
    """
    lines = split_lines(content)
    total = len(lines)
    start = max(start_line - 1, 0) if start_line is not None else 0
    end = min(end_line, total) if end_line is not None else total
    if start > total or start >= end:
        return EMPTY_RANGE_SENTINEL
    return "\n".join(lines[start:end])


class ToolExecutor:
    """Dispatches allow-listed tool calls.

    Example:
        executor = ToolExecutor(Path("/repo"), symbol_index)
        text = await executor.execute(ToolCall(name="read_file", parameters={"path": "a.py"}))
    """

    def __init__(
        self,
        workspace: Optional[Union[str, Path]],
        symbol_index: SymbolIndex,
        file_system: Optional[FileSystem] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or symbol_index.settings
        self.workspace = Path(workspace) if workspace else None
        self.symbol_index = symbol_index
        self.file_system: FileSystem = file_system or LocalFileSystem(
            max_results=self.settings.max_search_results,
            skip_dirs=[self.settings.state_dir_name],
        )
        self._handlers: Dict[str, ToolHandler] = {
            "read_file": self._read_file,
            "write_file": self._write_file,
            "list_dir": self._list_dir,
            "search_files": self._find_by_name,
            "find_by_name": self._find_by_name,
            "grep": self._search,
            "search": self._search,
            "search_codebase": self._search_codebase,
            "index_codebase": self._index_codebase,
            "todo_add": self._todo_add,
            "todo_list": self._todo_list,
            "todo_complete": self._todo_complete,
        }

    def resolve_path(self, path: str) -> Path:
        """Absolute paths pass through; relative paths join the workspace root."""
        candidate = Path(path)
        if candidate.is_absolute() or self.workspace is None:
            return candidate
        return self.workspace / candidate

    def _require_workspace(self, tool_name: str) -> Path:
        if self.workspace is None:
            raise NoWorkspaceError(tool_name=tool_name)
        return self.workspace

    def _todo_store(self, tool_name: str) -> TodoStore:
        workspace = self._require_workspace(tool_name)
        return TodoStore(self.settings.project_paths(workspace).todo_file)

    async def execute(self, call: ToolCall) -> str:
        """Run ``call`` and return its textual result.

        Raises:
            ToolError: Any tool failure (unknown tool, bad parameters, I/O)
        """
        params = parse_parameters(call)
        handler = self._handlers.get(call.name)
        if handler is None:
            # parse_parameters already rejects unknown names
            raise ToolError(f"Unknown tool: {call.name}", tool_name=call.name)

        logger.debug(f"Executing tool {call.name} with {call.parameters}")
        try:
            return await handler(params)
        except ToolError as e:
            if e.tool_name is None:
                e.tool_name = call.name
            raise

    @staticmethod
    def _os_error(tool_name: str, path: Path, error: Exception) -> ToolError:
        """Map a file-system failure to a tool error.

        ``ValueError`` covers paths with embedded NUL bytes and text that
        cannot be encoded.
        """
        if isinstance(error, FileNotFoundError):
            return NotFoundError(f"File not found: {path}", tool_name=tool_name, cause=error)
        return ToolIOError(str(error), tool_name=tool_name, path=str(path), cause=error)

    # ------------------------------------------------------------------
    # File tools
    # ------------------------------------------------------------------

    async def _read_file(self, params: ReadFileParams) -> str:
        path = self.resolve_path(params.path)
        try:
            content = await self.file_system.read_file(path)
        except (OSError, ValueError) as e:
            raise self._os_error("read_file", path, e) from e
        return select_line_range(content, params.start_line, params.end_line)

    async def _write_file(self, params: WriteFileParams) -> str:
        path = self.resolve_path(params.path)
        try:
            await self.file_system.write_file(path, params.content)
        except (OSError, ValueError) as e:
            raise self._os_error("write_file", path, e) from e
        return "File written successfully"

    async def _list_dir(self, params: ListDirParams) -> str:
        path = self.resolve_path(params.path)
        try:
            entries = await self.file_system.read_dir(path)
        except (OSError, ValueError) as e:
            raise self._os_error("list_dir", path, e) from e
        return json.dumps(entries)

    async def _find_by_name(self, params: FindByNameParams) -> str:
        workspace = self._require_workspace("find_by_name")
        try:
            results = await self.file_system.find_files_by_name(workspace, params.pattern)
        except (OSError, ValueError) as e:
            raise self._os_error("find_by_name", workspace, e) from e
        return json.dumps(results)

    async def _search(self, params: SearchParams) -> str:
        path = self.resolve_path(params.path)
        options = SearchOptions(
            query=params.query,
            case_sensitive=params.case_sensitive,
            whole_word=params.whole_word,
            regex=params.regex,
            include_pattern=params.include_pattern or "",
            exclude_pattern=params.exclude_pattern or "",
        )
        try:
            results = await self.file_system.search_in_files(path, options)
        except (OSError, ValueError) as e:
            raise self._os_error("search", path, e) from e
        return json.dumps(results)

    # ------------------------------------------------------------------
    # Symbol index tools
    # ------------------------------------------------------------------

    async def _search_codebase(self, params: SearchCodebaseParams) -> str:
        results = self.symbol_index.search(params.query)
        return json.dumps([symbol.model_dump() for symbol in results])

    async def _index_codebase(self, params: ToolParams) -> str:
        workspace = self._require_workspace("index_codebase")
        try:
            await self.symbol_index.index_workspace(workspace)
        except (OSError, ValueError) as e:
            raise self._os_error("index_codebase", workspace, e) from e
        return "Codebase indexed successfully"

    # ------------------------------------------------------------------
    # Todo tools
    # ------------------------------------------------------------------

    async def _todo_add(self, params: TodoAddParams) -> str:
        return await self._todo_store("todo_add").add(params.content)

    async def _todo_list(self, params: ToolParams) -> str:
        return await self._todo_store("todo_list").list()

    async def _todo_complete(self, params: TodoCompleteParams) -> str:
        return await self._todo_store("todo_complete").complete(params.id)
