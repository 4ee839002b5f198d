"""Unit tests for TypeScript, TSX and JavaScript entity extraction."""

from textwrap import dedent

import pytest

from codeindex.parsing import extract_entities_from_source, language_for_path


@pytest.fixture
def parse():
    def _parse(source: str, file_name: str):
        spec = language_for_path(file_name)
        return extract_entities_from_source(dedent(source).lstrip("\n"), spec, file_name)

    return _parse


def test_function_class_constructor_and_method(parse) -> None:
    entities = parse(
        """
        /** Greets a user. */
        function greet(name: string): string {
          return `Hello, ${name}`;
        }

        class User {
          constructor(private name: string) {}

          getName(): string {
            return this.name;
          }
        }
        """,
        "user.ts",
    )

    assert [(e.name, e.kind) for e in entities] == [
        ("greet", "Function"),
        ("User", "Class"),
        ("constructor", "Method"),
        ("getName", "Method"),
    ]
    greet = entities[0]
    assert greet.docstring == "/** Greets a user. */"
    assert greet.signature == "function greet(name: string): string"
    assert (greet.line_from, greet.line, greet.line_to) == (1, 2, 4)
    assert entities[2].context.enclosing_type_name == "User"
    assert entities[3].context.enclosing_type_name == "User"
    assert entities[1].context.enclosing_type_name is None


def test_exports_declarations_and_imports(parse) -> None:
    entities = parse(
        """
        import { readFile } from "fs";

        // Maximum retries
        export const MAX_RETRIES = 3;

        export interface Config {
          name: string;
        }

        export type Id = string | number;

        export enum Color { Red, Green }

        export const add = (a: number, b: number): number => a + b;

        let counter = 0;
        """,
        "config.ts",
    )

    kinds = {e.name: e.kind for e in entities}
    assert kinds == {
        "{ readFile }": "Import",
        "MAX_RETRIES": "Constant",
        "Config": "Interface",
        "Id": "Type Alias",
        "Color": "Enum",
        "add": "Function",
        "counter": "Variable",
    }

    max_retries = next(e for e in entities if e.name == "MAX_RETRIES")
    assert max_retries.docstring == "// Maximum retries"
    assert max_retries.line_from == 3
    assert max_retries.line == 4
    assert max_retries.signature == "const MAX_RETRIES = 3"
    assert max_retries.context.snippet == "export const MAX_RETRIES = 3;"

    add = next(e for e in entities if e.name == "add")
    assert add.signature.startswith("const add = (a: number, b: number): number")


def test_plain_block_comment_is_not_documentation(parse) -> None:
    (entity,) = parse(
        """
        /* license header */
        function f() {}
        """,
        "f.ts",
    )
    assert entity.docstring is None
    assert entity.line_from == 2


def test_tsx_components(parse) -> None:
    entities = parse(
        """
        export function MyComponent({ title }: { title: string }) {
          return <div>{title}</div>;
        }

        const Button = () => <button>Click</button>;

        function helper() {
          return 1;
        }
        """,
        "components.tsx",
    )

    assert [(e.name, e.kind) for e in entities] == [
        ("MyComponent", "Function Component"),
        ("Button", "Function Component"),
        ("helper", "Function"),
    ]


def test_namespace_extends_module_scope(parse) -> None:
    entities = parse(
        """
        namespace Shapes {
          export function area(r: number): number {
            return r * r;
          }
        }
        """,
        "shapes.ts",
    )

    by_name = {e.name: e for e in entities}
    assert by_name["Shapes"].kind == "Module"
    assert by_name["area"].kind == "Function"
    assert by_name["area"].context.module == "shapes.Shapes"


def test_javascript_uses_same_rules(parse) -> None:
    entities = parse(
        """
        const path = require("path");

        class Service {
          start() {
            return true;
          }
        }

        function run() {}
        """,
        "service.js",
    )

    assert [(e.name, e.kind) for e in entities] == [
        ("path", "Constant"),
        ("Service", "Class"),
        ("start", "Method"),
        ("run", "Function"),
    ]


def test_language_for_path_dispatch() -> None:
    assert language_for_path("a.ts").name == "typescript"
    assert language_for_path("a.tsx").name == "tsx"
    assert language_for_path("a.MJS").name == "javascript"
    assert language_for_path("a.rs").name == "rust"
    assert language_for_path("a.py").name == "python"
    assert language_for_path("a.go") is None
