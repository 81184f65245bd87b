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

"""File-system collaborator used by the tool executor.

``FileSystem`` is the narrow interface the executor depends on; methods raise
plain ``OSError`` subclasses and the executor maps them to tool errors.
``LocalFileSystem`` is the default implementation: file contents go through
aiofiles, directory walks run in a worker thread.
"""

import asyncio
import fnmatch
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern, Protocol, Union, runtime_checkable

import aiofiles

from cognitive.codebase.ignore_patterns import WorkspaceWalker
from cognitive.config.settings import COGNITIVE_DIR_NAME
from cognitive.core.errors import ToolError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Bytes inspected to decide whether a file is binary
BINARY_SNIFF_BYTES = 8192


@dataclass(frozen=True)
class SearchOptions:
    """Options for a content search across files."""

    query: str
    case_sensitive: bool = False
    whole_word: bool = False
    regex: bool = False
    include_pattern: str = ""
    exclude_pattern: str = ""

    def compile(self) -> Pattern[str]:
        """Build the line matcher.

        Raises:
            ToolError: If ``regex`` is set and the query does not compile
        """
        source = self.query if self.regex else re.escape(self.query)
        if self.whole_word:
            source = rf"\b(?:{source})\b"
        flags = 0 if self.case_sensitive else re.IGNORECASE
        try:
            return re.compile(source, flags)
        except re.error as e:
            raise ToolError(f"Invalid search pattern: {e}") from e


def split_globs(patterns: str) -> List[str]:
    """``"*.py, *.ts"`` -> ``["*.py", "*.ts"]``."""
    return [p.strip() for p in patterns.split(",") if p.strip()]


def matches_any_glob(rel_path: str, globs: List[str]) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    return any(fnmatch.fnmatch(rel_path, g) or fnmatch.fnmatch(name, g) for g in globs)


@runtime_checkable
class FileSystem(Protocol):
    """File operations the tool executor relies on."""

    async def read_file(self, path: PathLike) -> str: ...

    async def write_file(self, path: PathLike, content: str) -> None: ...

    async def read_dir(self, path: PathLike) -> List[Dict[str, Any]]: ...

    async def search_in_files(self, path: PathLike, options: SearchOptions) -> List[Dict[str, Any]]: ...

    async def find_files_by_name(self, root: PathLike, pattern: str) -> List[Dict[str, str]]: ...


class LocalFileSystem:
    """Local disk implementation of ``FileSystem``."""

    def __init__(self, max_results: int = 500, skip_dirs: Optional[List[str]] = None):
        """Initialize.

        Args:
            max_results: Cap on search and find results
            skip_dirs: Directory names never walked (the state directory by default)
        """
        self.max_results = max_results
        self.skip_dirs = list(skip_dirs) if skip_dirs is not None else [COGNITIVE_DIR_NAME]

    async def read_file(self, path: PathLike) -> str:
        async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
            return await f.read()

    async def write_file(self, path: PathLike, content: str) -> None:
        file_path = Path(path)
        # Create parent directories if they don't exist
        file_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(file_path, "w", encoding="utf-8") as f:
            await f.write(content)

    async def read_dir(self, path: PathLike) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._read_dir_sync, Path(path))

    @staticmethod
    def _read_dir_sync(directory: Path) -> List[Dict[str, Any]]:
        if not directory.exists():
            raise FileNotFoundError(f"No such directory: {directory}")
        if not directory.is_dir():
            raise NotADirectoryError(f"Not a directory: {directory}")

        entries = []
        for child in directory.iterdir():
            is_dir = child.is_dir()
            try:
                size = 0 if is_dir else child.stat().st_size
            except OSError:
                size = 0
            entries.append(
                {"name": child.name, "path": str(child), "is_dir": is_dir, "size": size}
            )
        entries.sort(key=lambda e: (not e["is_dir"], e["name"].lower()))
        return entries

    async def search_in_files(self, path: PathLike, options: SearchOptions) -> List[Dict[str, Any]]:
        matcher = options.compile()
        return await asyncio.to_thread(self._search_sync, Path(path), options, matcher)

    def _search_sync(
        self, target: Path, options: SearchOptions, matcher: Pattern[str]
    ) -> List[Dict[str, Any]]:
        if not target.exists():
            raise FileNotFoundError(f"No such file or directory: {target}")

        root = target.parent if target.is_file() else target
        walker = WorkspaceWalker(root, skip_dirs=self.skip_dirs)
        includes = split_globs(options.include_pattern)
        excludes = split_globs(options.exclude_pattern)

        results: List[Dict[str, Any]] = []
        for file_path in walker.iter_files(target):
            rel_path = walker.relative(file_path)
            if includes and not matches_any_glob(rel_path, includes):
                continue
            if excludes and matches_any_glob(rel_path, excludes):
                continue

            lines = self._read_text_lines(file_path)
            if lines is None:
                continue
            for number, line in enumerate(lines, start=1):
                if matcher.search(line):
                    results.append({"path": str(file_path), "line_number": number, "line": line})
                    if len(results) >= self.max_results:
                        logger.debug(f"Search result cap ({self.max_results}) reached")
                        return results
        return results

    @staticmethod
    def _read_text_lines(path: Path) -> Optional[List[str]]:
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            return None
        if b"\x00" in raw[:BINARY_SNIFF_BYTES]:
            return None
        return raw.decode("utf-8", errors="replace").splitlines()

    async def find_files_by_name(self, root: PathLike, pattern: str) -> List[Dict[str, str]]:
        return await asyncio.to_thread(self._find_sync, Path(root), pattern)

    def _find_sync(self, root: Path, pattern: str) -> List[Dict[str, str]]:
        try:
            regex: Optional[Pattern[str]] = re.compile(pattern, re.IGNORECASE)
        except re.error:
            regex = None
        needle = pattern.lower()

        walker = WorkspaceWalker(root, skip_dirs=self.skip_dirs)
        results: List[Dict[str, str]] = []
        for file_path in walker.iter_files():
            name = file_path.name
            matched = regex.search(name) if regex is not None else needle in name.lower()
            if not matched:
                continue
            results.append({"name": name, "path": str(file_path)})
            if len(results) >= self.max_results:
                break
        return results
