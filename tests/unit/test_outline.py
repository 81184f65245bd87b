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

"""Tests for codebase/outline module."""

from pathlib import Path

import pytest

from cognitive.codebase.models import SymbolKind
from cognitive.codebase.outline import DefaultOutlineExtractor, markdown_outline, python_outline
from cognitive.core.errors import SymbolIndexError


def summarize(symbols):
    """(name, kind, start, end, children) tuples for compact assertions."""
    return [
        (s.name, s.kind.value, s.start_line, s.end_line, summarize(s.children))
        for s in symbols
    ]


def outline_of(tmp_path, filename, source):
    path = tmp_path / filename
    path.write_text(source)
    return DefaultOutlineExtractor().parse_outline(path)


class TestPythonOutline:
    """Tests for the ast-based Python outline."""

    def test_classes_methods_functions(self, workspace):
        symbols = DefaultOutlineExtractor().parse_outline(workspace / "src" / "store.py")
        assert summarize(symbols) == [
            (
                "Store",
                "Class",
                1,
                8,
                [("save", "Method", 4, 5, []), ("saveFile", "Method", 7, 8, [])],
            ),
            ("autosave", "Function", 11, 12, []),
        ]
        assert symbols[0].detail == "Key value store."

    def test_nested_function(self):
        source = "async def outer():\n    def inner():\n        pass\n    return inner\n"
        assert summarize(python_outline(source)) == [
            ("outer", "Function", 1, 4, [("inner", "Function", 2, 3, [])])
        ]

    def test_syntax_error_raises(self, tmp_path):
        with pytest.raises(SymbolIndexError):
            outline_of(tmp_path, "broken.py", "def broken(:\n")


class TestTreeSitterOutline:
    """Tests for tree-sitter backed languages."""

    def test_typescript(self, workspace):
        symbols = DefaultOutlineExtractor().parse_outline(workspace / "src" / "app.ts")
        assert summarize(symbols) == [
            ("App", "Class", 1, 5, [("start", "Method", 2, 4, [])]),
            ("run", "Function", 7, 9, []),
        ]

    def test_strings_and_comments_ignored(self, tmp_path):
        source = (
            'const s = "class Fake {";\n'
            "// function commented() {}\n"
            "/* class Hidden { } */\n"
            "function real() {\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "a.js", source)) == [("real", "Function", 4, 5, [])]

    def test_rust(self, tmp_path):
        source = (
            "pub struct Store {\n"
            "    items: Vec<String>,\n"
            "}\n"
            "\n"
            "impl Store {\n"
            "    pub fn save(&self) {\n"
            "    }\n"
            "}\n"
            "\n"
            "fn helper() -> u32 {\n"
            "    1\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "lib.rs", source)) == [
            ("Store", "Struct", 1, 3, []),
            ("impl Store", "Namespace", 5, 8, [("save", "Method", 6, 7, [])]),
            ("helper", "Function", 10, 12, []),
        ]

    def test_go(self, tmp_path):
        source = (
            "package main\n"
            "\n"
            "type Server struct {\n"
            "\taddr string\n"
            "}\n"
            "\n"
            "func (s *Server) Start() error {\n"
            "\treturn nil\n"
            "}\n"
            "\n"
            "func main() {\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "main.go", source)) == [
            ("Server", "Struct", 3, 5, []),
            ("Start", "Method", 7, 9, []),
            ("main", "Function", 11, 12, []),
        ]

    def test_java(self, tmp_path):
        source = (
            "public class Greeter {\n"
            "    private String name;\n"
            "    public String greet(String who) {\n"
            '        return "hi " + who;\n'
            "    }\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "Greeter.java", source)) == [
            ("Greeter", "Class", 1, 6, [("greet", "Method", 3, 5, [])]),
        ]

    def test_function_valued_constants_and_nesting(self, tmp_path):
        source = (
            "export const handler = async (req) => {\n"
            "  return req;\n"
            "};\n"
            "const limit = 10;\n"
            "function outer() {\n"
            "  function inner() {}\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "handlers.ts", source)) == [
            ("handler", "Function", 1, 3, []),
            ("outer", "Function", 5, 7, [("inner", "Function", 6, 6, [])]),
        ]

    def test_tsx(self, tmp_path):
        source = "export function View() {\n  return <div />;\n}\n"
        assert summarize(outline_of(tmp_path, "View.tsx", source)) == [("View", "Function", 1, 3, [])]

    def test_rust_trait_signatures_are_methods(self, tmp_path):
        source = "pub trait Shape {\n    fn area(&self) -> f64;\n}\n"
        assert summarize(outline_of(tmp_path, "shape.rs", source)) == [
            ("Shape", "Interface", 1, 3, [("area", "Method", 2, 2, [])]),
        ]

    def test_c_skips_prototypes_and_bodiless_structs(self, tmp_path):
        source = (
            "struct point {\n"
            "    int x;\n"
            "};\n"
            "int add(int a, int b);\n"
            "struct point origin;\n"
            "static int *make(void) {\n"
            "    return 0;\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "point.c", source)) == [
            ("point", "Struct", 1, 3, []),
            ("make", "Function", 6, 8, []),
        ]

    def test_cpp_class_members_are_methods(self, tmp_path):
        source = (
            "namespace app {\n"
            "class Greeter {\n"
            "public:\n"
            "  void greet() {\n"
            "  }\n"
            "};\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "greeter.cpp", source)) == [
            (
                "app",
                "Namespace",
                1,
                7,
                [("Greeter", "Class", 2, 6, [("greet", "Method", 4, 5, [])])],
            ),
        ]

    def test_csharp(self, tmp_path):
        source = (
            "public class Greeter {\n"
            "    public void Greet() {\n"
            "    }\n"
            "}\n"
        )
        assert summarize(outline_of(tmp_path, "Greeter.cs", source)) == [
            ("Greeter", "Class", 1, 4, [("Greet", "Method", 2, 3, [])]),
        ]

    def test_shell_functions(self, tmp_path):
        source = "greet() {\n  echo hi\n}\nfunction build {\n  make\n}\n"
        assert summarize(outline_of(tmp_path, "run.sh", source)) == [
            ("greet", "Function", 1, 3, []),
            ("build", "Function", 4, 6, []),
        ]

    def test_detail_is_declaration_line(self, workspace):
        symbols = DefaultOutlineExtractor().parse_outline(workspace / "src" / "app.ts")
        assert symbols[0].detail == "export class App {"
        assert symbols[0].children[0].detail == "start(): void {"


class TestMarkdownOutline:
    """Tests for Markdown headings."""

    def test_heading_tree(self):
        text = "# Title\n\nintro\n\n## Part A\n\ntext\n\n## Part B\n\n### Detail\n"
        symbols = markdown_outline(text)
        assert summarize(symbols) == [
            (
                "Title",
                "String",
                1,
                11,
                [
                    ("Part A", "String", 5, 8, []),
                    ("Part B", "String", 9, 11, [("Detail", "String", 11, 11, [])]),
                ],
            )
        ]
        assert symbols[0].kind is SymbolKind.STRING
        assert symbols[0].detail == "#"

    def test_fenced_code_skipped(self):
        text = "# Real\n\n```\n# not a heading\n```\n"
        assert [s.name for s in markdown_outline(text)] == ["Real"]


class TestDefaultOutlineExtractor:
    """Tests for extension dispatch."""

    def test_unsupported_extension_yields_nothing(self, tmp_path):
        assert outline_of(tmp_path, "config.json", '{"class": "X"}') == []

    def test_supports(self):
        extractor = DefaultOutlineExtractor()
        assert extractor.supports(Path("a.tsx"))
        assert not extractor.supports(Path("a.toml"))
