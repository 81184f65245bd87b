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

"""Persisted binary snapshot of the symbol index.

Layout: a magic header line followed by zlib-compressed canonical JSON of
``IndexData``. Keys are sorted and separators fixed, so an unchanged index
always produces identical bytes. The format is internal to this package and
carries no compatibility guarantee across versions.
"""

import json
import logging
import os
import zlib
from pathlib import Path

from pydantic import ValidationError

from cognitive.codebase.models import IndexData
from cognitive.core.errors import SymbolIndexError

logger = logging.getLogger(__name__)

SNAPSHOT_MAGIC = b"CGIX1\n"


def encode_snapshot(data: IndexData) -> bytes:
    payload = json.dumps(
        data.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return SNAPSHOT_MAGIC + zlib.compress(payload, 6)


def decode_snapshot(blob: bytes) -> IndexData:
    """Decode snapshot bytes.

    Raises:
        SymbolIndexError: If the header, compression or content is invalid
    """
    if not blob.startswith(SNAPSHOT_MAGIC):
        raise SymbolIndexError("Unrecognized symbol snapshot header")
    try:
        raw = zlib.decompress(blob[len(SNAPSHOT_MAGIC) :])
        data = IndexData.model_validate(json.loads(raw.decode("utf-8")))
    except (zlib.error, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
        raise SymbolIndexError(f"Corrupt symbol snapshot: {e}", cause=e) from e
    # Rebuild so flat_symbols always matches the per-file lists
    return IndexData.build(data.file_symbols, data.file_outline_cache, data.file_metadata)


def write_snapshot(path: Path, data: IndexData) -> None:
    """Atomically write ``data`` to ``path``, creating parent directories."""
    blob = encode_snapshot(data)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "wb") as f:
            f.write(blob)
        os.replace(tmp_path, path)
    except OSError as e:
        raise SymbolIndexError(f"Failed to write symbol snapshot: {e}", path=str(path), cause=e) from e
    logger.debug(f"Wrote symbol snapshot {path} ({len(blob):,} bytes)")


def read_snapshot(path: Path) -> IndexData:
    """Read and decode the snapshot at ``path``.

    Raises:
        SymbolIndexError: If the file cannot be read or decoded
    """
    try:
        with open(path, "rb") as f:
            blob = f.read()
    except OSError as e:
        raise SymbolIndexError(f"Failed to read symbol snapshot: {e}", path=str(path), cause=e) from e
    return decode_snapshot(blob)
