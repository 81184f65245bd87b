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

"""Tree-sitter grammar loading.

Grammars ship as separate ``tree-sitter-<lang>`` distributions. Each one is
imported lazily the first time a file of that language is outlined, and the
``Language`` and ``Parser`` objects are cached per language for the life of
the process.
"""

import importlib
import logging
import threading
from typing import Dict, Optional, Tuple

from tree_sitter import Language, Parser, Tree

logger = logging.getLogger(__name__)

# language -> (module name, factory function)
LANGUAGE_MODULES: Dict[str, Tuple[str, str]] = {
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "rust": ("tree_sitter_rust", "language"),
    "go": ("tree_sitter_go", "language"),
    "java": ("tree_sitter_java", "language"),
    "c_sharp": ("tree_sitter_c_sharp", "language"),
    "c": ("tree_sitter_c", "language"),
    "cpp": ("tree_sitter_cpp", "language"),
    "bash": ("tree_sitter_bash", "language"),
}

EXTENSION_LANGUAGES: Dict[str, str] = {
    "ts": "typescript",
    "mts": "typescript",
    "cts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "rs": "rust",
    "go": "go",
    "java": "java",
    "cs": "c_sharp",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "hpp": "cpp",
    "sh": "bash",
}

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}
# Parser objects are not safe to share across indexing worker threads
_parser_lock = threading.Lock()


def language_for_extension(ext: str) -> Optional[str]:
    """Grammar name for a file extension (without the dot), if any."""
    return EXTENSION_LANGUAGES.get(ext.lower())


def get_language(name: str) -> Language:
    """Load and cache the grammar for ``name``.

    Raises:
        ValueError: If no grammar is registered for ``name``
        ImportError: If the grammar distribution is not installed
    """
    cached = _language_cache.get(name)
    if cached is not None:
        return cached

    if name not in LANGUAGE_MODULES:
        raise ValueError(f"Unsupported language: {name}")

    module_name, factory_name = LANGUAGE_MODULES[name]
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ImportError(
            f"Grammar for '{name}' is not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        ) from e

    factory = getattr(module, factory_name, None)
    if factory is None:
        raise AttributeError(f"Module '{module_name}' does not have function '{factory_name}'")

    language = Language(factory())
    _language_cache[name] = language
    logger.debug(f"Loaded tree-sitter grammar for {name}")
    return language


def get_parser(name: str) -> Parser:
    """Cached parser for ``name``."""
    parser = _parser_cache.get(name)
    if parser is None:
        parser = Parser(get_language(name))
        _parser_cache[name] = parser
    return parser


def parse(name: str, source: bytes) -> Tree:
    """Parse ``source`` with the grammar for ``name``."""
    with _parser_lock:
        return get_parser(name).parse(source)
