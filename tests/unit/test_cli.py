"""Unit tests for the command-line interface."""

import json

import pytest

from codeindex.cli import main

RUST_SOURCE = """/// Adds one.
fn inc(x: i32) -> i32 {
    x + 1
}
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("OPENAI_API_KEY", "OPENAI_API_BASE", "QDRANT_URL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def project(write_tree):
    return write_tree({"crate/src/lib.rs": RUST_SOURCE, "crate/src/util.ts": "export const A = 1;\n"})


def test_parse_file_prints_json(project, capsys) -> None:
    assert main(["parse-file", str(project / "crate" / "src" / "lib.rs")]) == 0

    data = json.loads(capsys.readouterr().out)
    assert [d["name"] for d in data] == ["inc"]
    assert data[0]["docstring"] == "/// Adds one."


def test_parse_file_resolves_partial_path(project, capsys) -> None:
    assert main(["parse-file", "src/lib.rs", "--root", str(project)]) == 0
    assert json.loads(capsys.readouterr().out)[0]["name"] == "inc"


def test_parse_file_unknown_extension_exits_with_error(project, capsys) -> None:
    notes = project / "notes.txt"
    notes.write_text("hello", encoding="utf-8")

    assert main(["parse-file", str(notes)]) == 1
    assert "Unsupported file extension" in capsys.readouterr().err


def test_parse_dir_to_output_file(project, tmp_path) -> None:
    output = tmp_path / "index.json"

    assert main(["parse-dir", str(project), "-e", "rs", "ts", "-o", str(output)]) == 0

    names = [d["name"] for d in json.loads(output.read_text(encoding="utf-8"))]
    assert names == ["inc", "A"]


def test_parse_dir_rejects_bad_snippet_size(project, capsys) -> None:
    assert main(["parse-dir", str(project), "-e", "rs", "--max-snippet-size", "0"]) == 2


def test_embed_without_api_key_fails(project, tmp_path, capsys) -> None:
    index = tmp_path / "index.json"
    assert main(["parse-dir", str(project), "-e", "rs", "-o", str(index)]) == 0

    assert main(["embed", str(index), str(tmp_path / "embedded.json")]) == 1
    assert "API key" in capsys.readouterr().err
    assert not (tmp_path / "embedded.json").exists()


def test_invalid_granularity_is_rejected_by_argparse(project) -> None:
    with pytest.raises(SystemExit):
        main(["parse-dir", str(project), "--granularity", "extreme"])
