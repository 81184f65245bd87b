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

"""Incrementally refreshed symbol index with fuzzy-ranked search.

Indexing walks the workspace, fingerprints every candidate file by
``(mtime seconds, size)`` and re-runs outline extraction only for files whose
fingerprint changed. Unchanged files carry their previous symbol and outline
lists into the new snapshot as the same objects. The new ``IndexData``
replaces the old one under the index lock and is persisted to
``.cognitive/symbols-v1.bin``.

Search ranks flattened symbols by name match quality, symbol kind and file
name. A trailing `` in <fragment>`` clause restricts results to paths
containing the fragment.

Usage:
    index = SymbolIndex()
    await index.load_or_index(Path("/path/to/project"))
    for symbol in index.search("save in store"):
        print(symbol.name, symbol.file_path, symbol.start_line)
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple, Union

from cognitive.codebase.fuzzy import fuzzy_match
from cognitive.codebase.ignore_patterns import INDEXED_EXTENSIONS, WorkspaceWalker
from cognitive.codebase.models import (
    FileMetadata,
    IndexData,
    IndexedSymbol,
    OutlineSymbol,
    flatten_outline,
)
from cognitive.codebase.outline import DefaultOutlineExtractor, OutlineExtractor
from cognitive.codebase.snapshot import read_snapshot, write_snapshot
from cognitive.config.settings import ProjectPaths, Settings
from cognitive.core.errors import SymbolIndexError

logger = logging.getLogger(__name__)

# Ranking weights
SCORE_EXACT = 1000
SCORE_EXACT_CASE_INSENSITIVE = 800
SCORE_PREFIX = 500
SCORE_DETAIL = 50
SCORE_PATH = 30
BOOST_PATH_FILTER = 100
BOOST_TYPE_KIND = 150
BOOST_CALLABLE_KIND = 100
BOOST_PARENT = 50
BOOST_FILENAME = 100

TYPE_KINDS = frozenset({"Class", "Interface", "Struct"})
CALLABLE_KINDS = frozenset({"Function", "Method"})

PATH_CLAUSE = " in "


@dataclass
class _FileResult:
    path: str
    metadata: FileMetadata
    symbols: List[IndexedSymbol]
    outline: List[OutlineSymbol]
    reparsed: bool
    failed: bool = False


def split_path_clause(query: str) -> Tuple[str, Optional[str]]:
    """Split ``"login in store"`` into ``("login", "store")``.

    The last `` in `` (case-insensitive) starts the clause; the fragment is
    lowercased. Queries without a clause return ``(query, None)``.
    """
    idx = query.lower().rfind(PATH_CLAUSE)
    if idx == -1:
        return query.strip(), None
    fragment = query[idx + len(PATH_CLAUSE) :].strip().lower()
    return query[:idx].strip(), fragment


class SymbolIndex:
    """Workspace symbol index shared by tools and the agent service.

    One re-entrant lock guards the whole ``IndexData``: readers and writers
    exclude each other at whole-index granularity. Indexing passes themselves
    are serialized by a separate pass lock so two refreshes never interleave
    their snapshot-compute-swap sequence.
    """

    def __init__(
        self,
        outline_extractor: Optional[OutlineExtractor] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the index.

        Args:
            outline_extractor: Outline collaborator (defaults to DefaultOutlineExtractor)
            settings: Settings for limits, worker count and state directory
        """
        self.settings = settings or Settings()
        self.outline_extractor: OutlineExtractor = outline_extractor or DefaultOutlineExtractor()
        self._lock = threading.RLock()
        self._pass_lock = threading.Lock()
        self._data = IndexData()
        self._root: Optional[Path] = None
        self._last_indexed: Optional[float] = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def root(self) -> Optional[Path]:
        with self._lock:
            return self._root

    def get_index(self) -> IndexData:
        """Current snapshot (immutable; replaced wholesale by each pass)."""
        with self._lock:
            return self._data

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            data = self._data
            return {
                "root": str(self._root) if self._root else None,
                "total_files": len(data.file_metadata),
                "total_symbols": len(data.flat_symbols),
                "last_indexed": self._last_indexed,
            }

    def _paths(self, root: Path) -> ProjectPaths:
        return self.settings.project_paths(root)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load_snapshot(self, root: Union[str, Path]) -> bool:
        """Load the persisted snapshot for ``root`` if one exists.

        Returns:
            True if a snapshot was loaded
        """
        root = Path(root).resolve()
        snapshot_path = self._paths(root).symbol_snapshot
        if not snapshot_path.exists():
            return False
        try:
            data = read_snapshot(snapshot_path)
        except SymbolIndexError as e:
            logger.warning(f"Ignoring unreadable symbol snapshot {snapshot_path}: {e.message}")
            return False

        with self._lock:
            self._data = data
            self._root = root
        logger.info(
            f"Loaded symbol snapshot: {len(data.file_metadata)} files, "
            f"{len(data.flat_symbols)} symbols"
        )
        return True

    async def load_or_index(self, root: Union[str, Path]) -> IndexData:
        """Load the snapshot (if any), then run an incremental pass to catch drift."""
        await asyncio.to_thread(self.load_snapshot, root)
        return await self.index_workspace(root)

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def index_workspace(self, root: Union[str, Path]) -> IndexData:
        """Run one incremental indexing pass in a worker thread."""
        return await asyncio.to_thread(self.index_workspace_sync, root)

    def index_workspace_sync(self, root: Union[str, Path]) -> IndexData:
        """Blocking incremental pass; see ``index_workspace``."""
        with self._pass_lock:
            return self._run_pass(Path(root).resolve())

    def _run_pass(self, root: Path) -> IndexData:
        start_time = time.time()
        walker = WorkspaceWalker(
            root,
            extensions=INDEXED_EXTENSIONS,
            skip_dirs={self.settings.state_dir_name},
        )
        files = [(path, walker.relative(path)) for path in walker.iter_files()]

        with self._lock:
            previous = self._data if self._root == root else IndexData()

        workers = self.settings.index_workers or None
        results: List[_FileResult] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cognitive-index") as pool:
            futures = {
                pool.submit(self._scan_file, path, rel_path, previous): rel_path
                for path, rel_path in files
            }
            for future in as_completed(futures):
                rel_path = futures[future]
                try:
                    result = future.result()
                except Exception as exc:
                    logger.warning(f"Indexing failed for {rel_path}: {exc}")
                    continue
                if result is not None:
                    results.append(result)

        file_metadata: Dict[str, FileMetadata] = {}
        file_symbols: Dict[str, List[IndexedSymbol]] = {}
        file_outlines: Dict[str, List[OutlineSymbol]] = {}
        for result in results:
            file_metadata[result.path] = result.metadata
            file_symbols[result.path] = result.symbols
            file_outlines[result.path] = result.outline

        data = IndexData.build(file_symbols, file_outlines, file_metadata)
        with self._lock:
            self._data = data
            self._root = root
            self._last_indexed = time.time()

        try:
            write_snapshot(self._paths(root).symbol_snapshot, data)
        except SymbolIndexError as e:
            logger.warning(f"Symbol snapshot not saved: {e.message}")

        reparsed = sum(1 for r in results if r.reparsed)
        failed = sum(1 for r in results if r.failed)
        removed = len(set(previous.file_metadata) - set(file_metadata))
        elapsed = time.time() - start_time
        logger.info(
            f"Indexed {len(file_metadata)} files in {elapsed:.2f}s: {reparsed} parsed, "
            f"{len(results) - reparsed} unchanged, {removed} removed, {failed} failed, "
            f"{len(data.flat_symbols)} symbols"
        )
        return data

    def _scan_file(self, path: Path, rel_path: str, previous: IndexData) -> Optional[_FileResult]:
        try:
            stat = path.stat()
        except OSError as e:
            # Vanished between the walk and the stat
            logger.debug(f"Skipping {rel_path}: {e}")
            return None

        metadata = FileMetadata(last_modified=int(stat.st_mtime), size=stat.st_size)
        prev_metadata = previous.file_metadata.get(rel_path)
        prev_symbols = previous.file_symbols.get(rel_path)
        prev_outline = previous.file_outline_cache.get(rel_path, [])

        if prev_metadata == metadata and prev_symbols is not None:
            return _FileResult(rel_path, prev_metadata, prev_symbols, prev_outline, reparsed=False)

        try:
            outline = self.outline_extractor.parse_outline(path)
        except SymbolIndexError as e:
            logger.warning(f"Outline extraction failed for {rel_path}: {e.message}")
            return self._stale_result(rel_path, metadata, prev_symbols, prev_outline)
        except Exception as e:
            logger.warning(f"Outline extractor error for {rel_path}: {e}")
            return self._stale_result(rel_path, metadata, prev_symbols, prev_outline)

        return _FileResult(
            rel_path,
            metadata,
            flatten_outline(outline, rel_path),
            outline,
            reparsed=True,
        )

    @staticmethod
    def _stale_result(
        rel_path: str,
        metadata: FileMetadata,
        prev_symbols: Optional[List[IndexedSymbol]],
        prev_outline: List[OutlineSymbol],
    ) -> _FileResult:
        return _FileResult(
            rel_path,
            metadata,
            prev_symbols if prev_symbols is not None else [],
            prev_outline,
            reparsed=False,
            failed=True,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str, limit: Optional[int] = None) -> List[IndexedSymbol]:
        """Return up to ``limit`` ranked, de-duplicated symbols for ``query``.

        Args:
            query: Free text, optionally ending in `` in <path fragment>``
            limit: Maximum results (defaults to settings.search_result_limit)
        """
        limit = limit or self.settings.search_result_limit
        text, path_filter = split_path_clause(query)
        if not text:
            return []

        with self._lock:
            symbols = self._data.flat_symbols

        query_lower = text.lower()
        is_short = len(text) < self.settings.short_query_length

        scored: List[Tuple[int, IndexedSymbol]] = []
        for symbol in symbols:
            score = self._score(symbol, text, query_lower, path_filter, is_short)
            if score is not None:
                scored.append((score, symbol))

        # Stable sort keeps index order among equal scores
        scored.sort(key=lambda item: item[0], reverse=True)

        seen = set()
        results: List[IndexedSymbol] = []
        for _, symbol in scored:
            key = symbol.dedup_key
            if key in seen:
                continue
            seen.add(key)
            results.append(symbol)
            if len(results) >= limit:
                break

        logger.debug(f"Symbol search '{query}': {len(scored)} matches, returning {len(results)}")
        return results

    @staticmethod
    def _score(
        symbol: IndexedSymbol,
        query: str,
        query_lower: str,
        path_filter: Optional[str],
        is_short: bool,
    ) -> Optional[int]:
        score = 0

        if path_filter is not None:
            if path_filter not in symbol.file_path.lower():
                return None
            score += BOOST_PATH_FILTER

        name = symbol.name
        if is_short:
            # Fuzzy matching is too noisy for one or two characters
            if name == query:
                score += SCORE_EXACT
            elif name.startswith(query):
                score += SCORE_PREFIX
            else:
                return None
        else:
            match = fuzzy_match(query, name)
            if match is not None and match.score > 0:
                if name == query:
                    score += SCORE_EXACT
                elif name.lower() == query_lower:
                    score += SCORE_EXACT_CASE_INSENSITIVE
                elif name.startswith(query):
                    score += SCORE_PREFIX
                else:
                    score += match.score
            elif symbol.detail and query_lower in symbol.detail.lower():
                score += SCORE_DETAIL
            elif query_lower in symbol.file_path.lower():
                score += SCORE_PATH
            else:
                return None

        if symbol.kind in TYPE_KINDS:
            score += BOOST_TYPE_KIND
        elif symbol.kind in CALLABLE_KINDS:
            score += BOOST_CALLABLE_KIND

        if symbol.parent_name and query_lower in symbol.parent_name.lower():
            score += BOOST_PARENT

        if query_lower in PurePosixPath(symbol.file_path).name.lower():
            score += BOOST_FILENAME

        return score
