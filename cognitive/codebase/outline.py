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

"""Outline extraction: hierarchical symbols for one source file.

The symbol index talks to outline extraction through the ``OutlineExtractor``
protocol, so a language-server backed implementation can be dropped in. The
bundled ``DefaultOutlineExtractor`` needs no external processes:

- Python: the ``ast`` module (classes, functions, methods, nesting)
- TypeScript/JavaScript, Rust, Go, Java, C#, C/C++, shell: tree-sitter
  syntax trees walked with per-language node rules
- Markdown: ATX headings nested by level

Other indexed file types (JSON, YAML, TOML, SQL) produce no symbols.
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from tree_sitter import Node

from cognitive.codebase import tree_sitter_manager
from cognitive.codebase.models import OutlineSymbol, SymbolKind
from cognitive.core.errors import SymbolIndexError

logger = logging.getLogger(__name__)

# Larger files are indexed without symbols
MAX_OUTLINE_BYTES = 2 * 1024 * 1024
MAX_DETAIL_CHARS = 160


class OutlineExtractor(Protocol):
    """Produces the symbol outline of a file."""

    def parse_outline(self, path: Path) -> List[OutlineSymbol]:
        """Return top-level symbols with nested children.

        Raises:
            SymbolIndexError: If the file cannot be read or parsed
        """
        ...


# =============================================================================
# Tree-sitter node rules
# =============================================================================

Resolver = Callable[[Node], Optional[Tuple[str, SymbolKind]]]


@dataclass(frozen=True)
class NodeRule:
    """How one syntax node type becomes a symbol.

    Attributes:
        resolve: Returns ``(name, kind)``, or None when the node is not a symbol
        holds_methods: Functions directly inside become Methods
    """

    resolve: Resolver
    holds_methods: bool = False


def node_text(node: Optional[Node]) -> Optional[str]:
    if node is None or node.text is None:
        return None
    text = " ".join(node.text.decode("utf-8", errors="replace").split())
    return text or None


def _named(kind: SymbolKind, field_name: str = "name") -> Resolver:
    def resolve(node: Node) -> Optional[Tuple[str, SymbolKind]]:
        name = node_text(node.child_by_field_name(field_name))
        return (name, kind) if name else None

    return resolve


def _with_body(kind: SymbolKind) -> Resolver:
    """Named declarations that only count when they carry a body (C structs)."""

    def resolve(node: Node) -> Optional[Tuple[str, SymbolKind]]:
        if node.child_by_field_name("body") is None:
            return None
        return _named(kind)(node)

    return resolve


FUNCTION_VALUE_TYPES = frozenset(
    {"arrow_function", "function", "function_expression", "generator_function"}
)


def _js_function_variable(node: Node) -> Optional[Tuple[str, SymbolKind]]:
    """``const run = () => ...`` and ``let f = function () {...}``."""
    value = node.child_by_field_name("value")
    if value is None or value.type not in FUNCTION_VALUE_TYPES:
        return None
    name_node = node.child_by_field_name("name")
    if name_node is None or name_node.type != "identifier":
        return None
    name = node_text(name_node)
    return (name, SymbolKind.FUNCTION) if name else None


def _rust_impl(node: Node) -> Optional[Tuple[str, SymbolKind]]:
    target = node_text(node.child_by_field_name("type"))
    if not target:
        return None
    trait = node_text(node.child_by_field_name("trait"))
    name = f"impl {trait} for {target}" if trait else f"impl {target}"
    return name, SymbolKind.NAMESPACE


GO_TYPE_KINDS = {
    "struct_type": SymbolKind.STRUCT,
    "interface_type": SymbolKind.INTERFACE,
}


def _go_type_spec(node: Node) -> Optional[Tuple[str, SymbolKind]]:
    type_node = node.child_by_field_name("type")
    kind = GO_TYPE_KINDS.get(type_node.type) if type_node is not None else None
    name = node_text(node.child_by_field_name("name"))
    if kind is None or not name:
        return None
    return name, kind


C_NAME_TYPES = frozenset(
    {"identifier", "field_identifier", "qualified_identifier", "destructor_name", "operator_name"}
)


def _c_function(node: Node) -> Optional[Tuple[str, SymbolKind]]:
    """Follow the declarator chain (pointer, reference, function) to the name."""
    current = node.child_by_field_name("declarator")
    while current is not None:
        if current.type in C_NAME_TYPES:
            name = node_text(current)
            return (name, SymbolKind.FUNCTION) if name else None
        inner = current.child_by_field_name("declarator")
        if inner is None and current.named_children:
            inner = current.named_children[0]
        current = inner
    return None


_CLASS = NodeRule(_named(SymbolKind.CLASS), holds_methods=True)
_INTERFACE = NodeRule(_named(SymbolKind.INTERFACE), holds_methods=True)
_ENUM = NodeRule(_named(SymbolKind.ENUM))
_STRUCT = NodeRule(_named(SymbolKind.STRUCT), holds_methods=True)
_NAMESPACE = NodeRule(_named(SymbolKind.NAMESPACE))
_FUNCTION = NodeRule(_named(SymbolKind.FUNCTION))
_METHOD = NodeRule(_named(SymbolKind.METHOD))

_JS_RULES: Dict[str, NodeRule] = {
    "class_declaration": _CLASS,
    "abstract_class_declaration": _CLASS,
    "interface_declaration": _INTERFACE,
    "enum_declaration": _ENUM,
    "internal_module": _NAMESPACE,
    "function_declaration": _FUNCTION,
    "generator_function_declaration": _FUNCTION,
    "method_definition": _METHOD,
    "variable_declarator": NodeRule(_js_function_variable),
}

_C_RULES: Dict[str, NodeRule] = {
    "struct_specifier": NodeRule(_with_body(SymbolKind.STRUCT), holds_methods=True),
    "union_specifier": NodeRule(_with_body(SymbolKind.STRUCT), holds_methods=True),
    "enum_specifier": NodeRule(_with_body(SymbolKind.ENUM)),
    "function_definition": NodeRule(_c_function),
}

LANGUAGE_RULES: Dict[str, Dict[str, NodeRule]] = {
    "javascript": _JS_RULES,
    "typescript": _JS_RULES,
    "tsx": _JS_RULES,
    "rust": {
        "struct_item": _STRUCT,
        "union_item": _STRUCT,
        "enum_item": _ENUM,
        "trait_item": _INTERFACE,
        "impl_item": NodeRule(_rust_impl, holds_methods=True),
        "function_item": _FUNCTION,
        "function_signature_item": _FUNCTION,
        "mod_item": NodeRule(_named(SymbolKind.MODULE)),
    },
    "go": {
        "function_declaration": _FUNCTION,
        "method_declaration": _METHOD,
        "type_spec": NodeRule(_go_type_spec),
    },
    "java": {
        "class_declaration": _CLASS,
        "record_declaration": _CLASS,
        "interface_declaration": _INTERFACE,
        "annotation_type_declaration": _INTERFACE,
        "enum_declaration": _ENUM,
        "method_declaration": _METHOD,
        "constructor_declaration": _METHOD,
    },
    "c_sharp": {
        "namespace_declaration": _NAMESPACE,
        "file_scoped_namespace_declaration": _NAMESPACE,
        "class_declaration": _CLASS,
        "record_declaration": _CLASS,
        "struct_declaration": _STRUCT,
        "interface_declaration": _INTERFACE,
        "enum_declaration": _ENUM,
        "method_declaration": _METHOD,
        "constructor_declaration": _METHOD,
    },
    "c": _C_RULES,
    "cpp": {
        **_C_RULES,
        "class_specifier": NodeRule(_with_body(SymbolKind.CLASS), holds_methods=True),
        "namespace_definition": _NAMESPACE,
    },
    "bash": {
        "function_definition": _FUNCTION,
    },
}


class TreeSitterOutliner:
    """Walks a syntax tree and keeps the nodes its rules recognize."""

    def __init__(self, language: str):
        self.language = language
        self.rules = LANGUAGE_RULES[language]

    def outline(self, source: bytes) -> List[OutlineSymbol]:
        tree = tree_sitter_manager.parse(self.language, source)
        lines = source.decode("utf-8", errors="replace").splitlines()
        return self._collect(tree.root_node, lines, holds_methods=False)

    def _collect(self, node: Node, lines: List[str], holds_methods: bool) -> List[OutlineSymbol]:
        symbols: List[OutlineSymbol] = []
        for child in node.named_children:
            rule = self.rules.get(child.type)
            resolved = rule.resolve(child) if rule is not None else None
            if resolved is None:
                # Wrappers such as export statements and declaration lists
                symbols.extend(self._collect(child, lines, holds_methods))
                continue

            name, kind = resolved
            if kind is SymbolKind.FUNCTION and holds_methods:
                kind = SymbolKind.METHOD
            start_row, end_row = child.start_point[0], child.end_point[0]
            detail = lines[start_row].strip()[:MAX_DETAIL_CHARS] if start_row < len(lines) else ""
            symbols.append(
                OutlineSymbol(
                    name=name,
                    kind=kind,
                    detail=detail or None,
                    start_line=start_row + 1,
                    end_line=end_row + 1,
                    children=self._collect(child, lines, rule.holds_methods),
                )
            )
        return symbols


# =============================================================================
# Python and Markdown
# =============================================================================


def _first_doc_line(node: ast.AST) -> Optional[str]:
    doc = ast.get_docstring(node, clean=True)
    if not doc:
        return None
    return doc.strip().splitlines()[0][:160]


def _python_symbols(body: List[ast.stmt], in_class: bool) -> List[OutlineSymbol]:
    symbols: List[OutlineSymbol] = []
    for node in body:
        if isinstance(node, ast.ClassDef):
            symbols.append(
                OutlineSymbol(
                    name=node.name,
                    kind=SymbolKind.CLASS,
                    detail=_first_doc_line(node),
                    start_line=node.lineno,
                    end_line=node.end_lineno or node.lineno,
                    children=_python_symbols(node.body, in_class=True),
                )
            )
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            symbols.append(
                OutlineSymbol(
                    name=node.name,
                    kind=SymbolKind.METHOD if in_class else SymbolKind.FUNCTION,
                    detail=_first_doc_line(node),
                    start_line=node.lineno,
                    end_line=node.end_lineno or node.lineno,
                    children=_python_symbols(node.body, in_class=False),
                )
            )
    return symbols


def python_outline(source: str, filename: str = "<unknown>") -> List[OutlineSymbol]:
    tree = ast.parse(source, filename=filename)
    return _python_symbols(tree.body, in_class=False)


_HEADING_PATTERN = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.+?)[ \t]*#*[ \t]*$")


@dataclass
class _Heading:
    level: int
    title: str
    start_line: int
    end_line: int = 0
    children: List["_Heading"] = field(default_factory=list)

    def to_symbol(self) -> OutlineSymbol:
        return OutlineSymbol(
            name=self.title,
            kind=SymbolKind.STRING,
            detail="#" * self.level,
            start_line=self.start_line,
            end_line=self.end_line,
            children=[c.to_symbol() for c in self.children],
        )


def markdown_outline(text: str) -> List[OutlineSymbol]:
    """Headings nested by level; a section ends before the next heading of equal or higher rank."""
    lines = text.splitlines()
    roots: List[_Heading] = []
    stack: List[_Heading] = []
    in_fence = False

    for number, line in enumerate(lines, start=1):
        if line.lstrip().startswith(("```", "~~~")):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _HEADING_PATTERN.match(line)
        if not match:
            continue
        heading = _Heading(level=len(match.group(1)), title=match.group(2), start_line=number)
        while stack and stack[-1].level >= heading.level:
            stack.pop().end_line = number - 1
        (stack[-1].children if stack else roots).append(heading)
        stack.append(heading)

    for heading in stack:
        heading.end_line = len(lines)
    return [h.to_symbol() for h in roots]




# =============================================================================
# Default extractor
# =============================================================================


class DefaultOutlineExtractor:
    """Outline extractor backed by ``ast``, tree-sitter and Markdown headings."""

    def __init__(self, max_bytes: int = MAX_OUTLINE_BYTES):
        self.max_bytes = max_bytes
        self._outliners: Dict[str, TreeSitterOutliner] = {}

    def supports(self, path: Path) -> bool:
        ext = path.suffix[1:].lower()
        return ext in ("py", "md") or tree_sitter_manager.language_for_extension(ext) is not None

    def parse_outline(self, path: Path) -> List[OutlineSymbol]:
        if not self.supports(path):
            return []

        try:
            if path.stat().st_size > self.max_bytes:
                logger.debug(f"Skipping outline for large file {path}")
                return []
            source = path.read_bytes()
        except OSError as e:
            raise SymbolIndexError(f"Cannot read {path}: {e}", path=str(path), cause=e) from e

        ext = path.suffix[1:].lower()
        if ext == "md":
            return markdown_outline(source.decode("utf-8", errors="replace"))
        try:
            if ext == "py":
                return python_outline(source.decode("utf-8", errors="replace"), filename=str(path))
            return self._outliner_for(ext).outline(source)
        except (SyntaxError, ValueError, RecursionError, ImportError) as e:
            raise SymbolIndexError(f"Cannot parse {path}: {e}", path=str(path), cause=e) from e

    def _outliner_for(self, ext: str) -> TreeSitterOutliner:
        language = tree_sitter_manager.language_for_extension(ext)
        outliner = self._outliners.get(language)
        if outliner is None:
            outliner = TreeSitterOutliner(language)
            self._outliners[language] = outliner
        return outliner
