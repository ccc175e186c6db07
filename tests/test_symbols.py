"""
Symbol and File Metadata Extraction Tests
"""

from coderag.indexing.symbols import (
    SymbolKind,
    build_file_record,
    extract_dependencies,
    extract_exports,
    extract_symbols,
)


TS_SOURCE = """import React from 'react';
import './styles.css';
const fs = require('fs');

export interface Props {
  name: string;
}

export type Mode = 'light' | 'dark';

export class Widget {
}

export async function loadWidget(id) {
  return id;
}

enum Color { Red, Green }
"""


class TestExtractSymbols:

    def test_typescript_declarations_in_line_order(self):
        symbols = extract_symbols(TS_SOURCE, "typescript", "src/widget.ts")

        assert [(s.name, s.kind) for s in symbols] == [
            ("Props", SymbolKind.INTERFACE),
            ("Mode", SymbolKind.TYPE),
            ("Widget", SymbolKind.CLASS),
            ("loadWidget", SymbolKind.FUNCTION),
            ("Color", SymbolKind.ENUM),
        ]
        assert all(s.file_path == "src/widget.ts" for s in symbols)

    def test_line_numbers_are_one_based(self):
        symbols = extract_symbols(TS_SOURCE, "typescript")
        by_name = {s.name: s for s in symbols}

        assert by_name["Props"].line == 5
        assert by_name["loadWidget"].line == 14

    def test_signature_is_declaration_line(self):
        symbols = extract_symbols(TS_SOURCE, "typescript")
        load = next(s for s in symbols if s.name == "loadWidget")

        assert load.signature == "export async function loadWidget(id) {"

    def test_python_functions_and_classes(self):
        source = "class Parser:\n    async def parse(self):\n        pass\n\ndef main():\n    pass\n"
        symbols = extract_symbols(source, "python")

        assert [(s.name, s.kind, s.line) for s in symbols] == [
            ("Parser", SymbolKind.CLASS, 1),
            ("parse", SymbolKind.FUNCTION, 2),
            ("main", SymbolKind.FUNCTION, 5),
        ]

    def test_unsupported_language_yields_nothing(self):
        assert extract_symbols("function foo() {}", "plaintext") == []

    def test_empty_content(self):
        assert extract_symbols("", "typescript") == []

    def test_repeated_name_on_different_lines_is_kept(self):
        source = "function dup() {}\nfunction dup() {}\n"
        symbols = extract_symbols(source, "javascript")

        assert [s.line for s in symbols] == [1, 2]

    def test_type_requires_assignment(self):
        # "type" used as a plain word is not a declaration
        symbols = extract_symbols("const type = input.type;\n", "typescript")
        assert symbols == []


class TestFileMetadata:

    def test_javascript_dependencies(self):
        deps = extract_dependencies(TS_SOURCE, "typescript")
        assert deps == ["react", "./styles.css", "fs"]

    def test_python_dependencies(self):
        source = "import os, sys\nfrom pathlib import Path\nimport numpy as np\n"
        deps = extract_dependencies(source, "python")

        assert set(deps) == {"os", "sys", "pathlib", "numpy"}
        assert len(deps) == 4

    def test_exports(self):
        source = "export const a = 1;\nexport default class Main {}\nconst b = 2;\nexport { b as bee };\n"
        assert extract_exports(source, "typescript") == ["a", "Main", "bee"]

    def test_exports_only_for_js_family(self):
        assert extract_exports("export const a = 1;", "python") == []

    def test_build_file_record(self):
        record = build_file_record("src/widget.ts", TS_SOURCE, "typescript", indexed_at=5.0)

        assert record.path == "src/widget.ts"
        assert record.language == "typescript"
        assert record.size == len(TS_SOURCE.encode("utf-8"))
        assert record.indexed_at == 5.0
        assert len(record.symbols) == 5
        assert record.imports == record.dependencies
        assert "Widget" in record.exports


GO_SOURCE = """package main

type Server struct {
	addr string
}

type Handler interface {
	Serve()
}

func (s *Server) Start(port int) error {
	return nil
}

func main() {
}
"""

RUST_SOURCE = """pub struct Point {
    x: i32,
}

pub trait Shape {
    fn area(&self) -> f64;
}

pub enum Kind { A, B }

fn first<'a>(x: &'a str) -> &'a str {
    x
}

pub async fn load(c: char) -> bool {
    c == '{'
}
"""

JAVA_SOURCE = """public class UserService {
    public User find(String id) {
        return repo.get(id);
    }
}

interface Repository {
}

enum Status { ACTIVE, INACTIVE }
"""


class TestLanguageTables:

    def test_go(self):
        symbols = extract_symbols(GO_SOURCE, "go")

        assert [(s.name, s.kind, s.line) for s in symbols] == [
            ("Server", SymbolKind.CLASS, 3),
            ("Handler", SymbolKind.INTERFACE, 7),
            ("Start", SymbolKind.FUNCTION, 11),
            ("main", SymbolKind.FUNCTION, 15),
        ]

    def test_rust(self):
        symbols = extract_symbols(RUST_SOURCE, "rust")

        assert [(s.name, s.kind, s.line) for s in symbols] == [
            ("Point", SymbolKind.CLASS, 1),
            ("Shape", SymbolKind.INTERFACE, 5),
            ("area", SymbolKind.FUNCTION, 6),
            ("Kind", SymbolKind.ENUM, 9),
            ("first", SymbolKind.FUNCTION, 11),
            ("load", SymbolKind.FUNCTION, 15),
        ]

    def test_java(self):
        symbols = extract_symbols(JAVA_SOURCE, "java")

        assert [(s.name, s.kind, s.line) for s in symbols] == [
            ("UserService", SymbolKind.CLASS, 1),
            ("Repository", SymbolKind.INTERFACE, 7),
            ("Status", SymbolKind.ENUM, 10),
        ]

    def test_csharp(self):
        source = "public interface IStore\n{\n}\npublic class Store : IStore\n{\n}\n"
        symbols = extract_symbols(source, "csharp")

        assert [(s.name, s.kind, s.line) for s in symbols] == [
            ("IStore", SymbolKind.INTERFACE, 1),
            ("Store", SymbolKind.CLASS, 4),
        ]

    def test_kotlin_enum_class_is_one_symbol(self):
        source = "enum class Color { RED, GREEN }\n\nclass Palette {\n}\n"
        symbols = extract_symbols(source, "kotlin")

        assert [(s.name, s.kind, s.line) for s in symbols] == [
            ("Color", SymbolKind.ENUM, 1),
            ("Palette", SymbolKind.CLASS, 3),
        ]
