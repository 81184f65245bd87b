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

"""Data models for the symbol index.

All models are immutable once built. ``IndexData`` is replaced wholesale on
every indexing pass; unchanged files carry their previous symbol and outline
lists into the new snapshot as the very same objects.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SymbolKind(str, Enum):
    """Kinds reported by outline extractors (LSP naming)."""

    FILE = "File"
    MODULE = "Module"
    NAMESPACE = "Namespace"
    PACKAGE = "Package"
    CLASS = "Class"
    METHOD = "Method"
    PROPERTY = "Property"
    FIELD = "Field"
    CONSTRUCTOR = "Constructor"
    ENUM = "Enum"
    INTERFACE = "Interface"
    FUNCTION = "Function"
    VARIABLE = "Variable"
    CONSTANT = "Constant"
    STRUCT = "Struct"
    STRING = "String"
    TYPE_PARAMETER = "TypeParameter"
    KEY = "Key"


class OutlineSymbol(BaseModel):
    """Hierarchical symbol as produced by an outline extractor."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: SymbolKind
    detail: Optional[str] = None
    start_line: int
    end_line: int
    children: List["OutlineSymbol"] = Field(default_factory=list)


class IndexedSymbol(BaseModel):
    """Flattened code symbol stored in the index.

    ``parent_name`` is the display name of the enclosing symbol, kept only for
    presentation and ranking. It is never used to navigate the index.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    parent_name: Optional[str] = None
    kind: str
    detail: Optional[str] = None
    file_path: str
    start_line: int
    end_line: int

    @property
    def dedup_key(self) -> str:
        return f"{self.name}:{self.kind}:{self.file_path}"


class FileMetadata(BaseModel):
    """Staleness fingerprint of one indexed file."""

    model_config = ConfigDict(frozen=True)

    last_modified: int  # seconds since epoch
    size: int


class IndexData(BaseModel):
    """Aggregate snapshot of the whole workspace index.

    Invariants after a completed pass:
    - ``flat_symbols`` is the concatenation of ``file_symbols`` lists in
      sorted path order
    - ``file_symbols`` and ``file_metadata`` have the same keys
    """

    file_symbols: Dict[str, List[IndexedSymbol]] = Field(default_factory=dict)
    flat_symbols: List[IndexedSymbol] = Field(default_factory=list)
    file_outline_cache: Dict[str, List[OutlineSymbol]] = Field(default_factory=dict)
    file_metadata: Dict[str, FileMetadata] = Field(default_factory=dict)

    @classmethod
    def build(
        cls,
        file_symbols: Dict[str, List[IndexedSymbol]],
        file_outline_cache: Dict[str, List[OutlineSymbol]],
        file_metadata: Dict[str, FileMetadata],
    ) -> "IndexData":
        """Assemble a snapshot with deterministic ordering."""
        paths = sorted(file_metadata)
        ordered_symbols = {p: file_symbols.get(p, []) for p in paths}
        flat: List[IndexedSymbol] = []
        for path in paths:
            flat.extend(ordered_symbols[path])
        # model_construct keeps the caller's list objects instead of copying them
        return cls.model_construct(
            file_symbols=ordered_symbols,
            flat_symbols=flat,
            file_outline_cache={p: file_outline_cache[p] for p in paths if p in file_outline_cache},
            file_metadata={p: file_metadata[p] for p in paths},
        )


def flatten_outline(
    symbols: List[OutlineSymbol],
    file_path: str,
    parent_name: Optional[str] = None,
) -> List[IndexedSymbol]:
    """Depth-first flattening; each child records its parent's name."""
    flat: List[IndexedSymbol] = []
    for symbol in symbols:
        flat.append(
            IndexedSymbol(
                name=symbol.name,
                parent_name=parent_name,
                kind=symbol.kind.value,
                detail=symbol.detail,
                file_path=file_path,
                start_line=symbol.start_line,
                end_line=symbol.end_line,
            )
        )
        flat.extend(flatten_outline(symbol.children, file_path, symbol.name))
    return flat
