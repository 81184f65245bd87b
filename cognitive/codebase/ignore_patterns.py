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

"""Workspace traversal with VCS ignore rules.

Hidden files and directories are walked like any other path. ``.gitignore``
files are honored at every level (a nested file applies to its own subtree)
through ``gitignore_parser``. The ``.git`` directory and the workspace state
directory are never descended into.
"""

import logging
import os
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from gitignore_parser import parse_gitignore

logger = logging.getLogger(__name__)

# Source and text files the symbol index looks at
INDEXED_EXTENSIONS: FrozenSet[str] = frozenset(
    {
        "ts", "tsx", "js", "jsx", "mjs", "cjs", "mts", "cts",
        "rs", "py", "go", "c", "cpp", "h", "hpp", "cs", "java",
        "md", "json", "yml", "yaml", "toml", "sh", "sql",
    }
)  # fmt: skip

ALWAYS_SKIPPED_DIRS: FrozenSet[str] = frozenset({".git"})

GitignoreMatcher = Callable[[str], bool]


class WorkspaceWalker:
    """Enumerates workspace files honoring ignore rules."""

    def __init__(
        self,
        root: Path,
        extensions: Optional[Iterable[str]] = None,
        skip_dirs: Iterable[str] = (),
    ):
        """Initialize walker.

        Args:
            root: Workspace root
            extensions: Allowed extensions without the dot (None = every file)
            skip_dirs: Extra directory names never descended into
        """
        self.root = Path(root).resolve()
        self.extensions = frozenset(e.lower() for e in extensions) if extensions is not None else None
        self.skip_dirs = ALWAYS_SKIPPED_DIRS | frozenset(skip_dirs)

    def _wants(self, path: Path) -> bool:
        if self.extensions is None:
            return True
        return path.suffix[1:].lower() in self.extensions

    @staticmethod
    def _is_ignored(path: Path, matchers: List[Tuple[Path, GitignoreMatcher]]) -> bool:
        for base_dir, matcher in matchers:
            if base_dir != path and base_dir not in path.parents:
                continue
            try:
                if matcher(str(path)):
                    return True
            except ValueError:
                continue
        return False

    def _load_matcher(self, directory: Path) -> Optional[GitignoreMatcher]:
        gitignore = directory / ".gitignore"
        if not gitignore.is_file():
            return None
        try:
            return parse_gitignore(gitignore, base_dir=str(directory))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {gitignore}: {e}")
            return None

    def iter_files(self, start: Optional[Path] = None) -> Iterator[Path]:
        """Yield matching files under ``start`` (default: root), sorted by path."""
        start_dir = Path(start).resolve() if start is not None else self.root
        if start_dir.is_file():
            if self._wants(start_dir):
                yield start_dir
            return

        matchers: List[Tuple[Path, GitignoreMatcher]] = []
        # .gitignore files above the starting point still apply to it
        if start_dir != self.root and self.root in start_dir.parents:
            for ancestor in reversed([p for p in start_dir.parents if p == self.root or self.root in p.parents]):
                matcher = self._load_matcher(ancestor)
                if matcher is not None:
                    matchers.append((ancestor, matcher))

        found: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(start_dir):
            current = Path(dirpath)
            matcher = self._load_matcher(current)
            if matcher is not None:
                matchers.append((current, matcher))

            dirnames[:] = sorted(
                d
                for d in dirnames
                if d not in self.skip_dirs and not self._is_ignored(current / d, matchers)
            )
            for name in filenames:
                path = current / name
                if not path.is_file() or not self._wants(path):
                    continue
                if self._is_ignored(path, matchers):
                    continue
                found.append(path)

        found.sort(key=lambda p: p.as_posix())
        yield from found

    def relative(self, path: Path) -> str:
        """Workspace-relative POSIX path (absolute path if outside the root)."""
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()
