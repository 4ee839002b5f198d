"""Unit tests for the indexing pipeline."""

import json

import pytest

from codeindex.config import load_config
from codeindex.core.models import Granularity
from codeindex.exceptions import DiscoveryError, EmbeddingConfigError, EmbeddingError
from codeindex.indexing import indexer as indexer_module
from codeindex.indexing import (
    DefaultIndexer,
    ParseResult,
    build_index,
    index_directory,
    parse_directory,
    parse_file,
    query_collection,
)

RUST_MAIN = """use std::fs;
use std::io;
use std::path::Path;

/// Greets someone.
fn greet(name: &str) -> String {
    format!("Hello, {}!", name)
}

pub struct User {
    name: String,
}
"""

TS_APP = """export function add(a: number, b: number): number {
  return a + b;
}
"""


@pytest.fixture
def project(write_tree):
    return write_tree(
        {
            "src/main.rs": RUST_MAIN,
            "web/app.ts": TS_APP,
            "src/broken.rs": b"\xff\xfe not utf-8",
            "target/debug/gen.rs": "fn generated() {}\n",
            "README.md": "# readme\n",
        }
    )


@pytest.fixture
def cfg(monkeypatch):
    for var in ("OPENAI_API_KEY", "OPENAI_API_BASE", "QDRANT_URL", "CODEINDEX_COLLECTION"):
        monkeypatch.delenv(var, raising=False)
    return load_config({"embedding": {"max_retry_seconds": 1}})


def test_parse_directory_skips_bad_files_and_merges_imports(project) -> None:
    result = parse_directory(project, ["rs", "ts"])

    assert result.files_found == 3
    assert result.files_skipped == 1
    assert [(e.name, e.kind) for e in result.entities] == [
        ("Merged Import [lines 1-3]", "Import"),
        ("greet", "Function"),
        ("User", "Struct"),
        ("add", "Function"),
    ]


def test_parse_directory_coarse_merges_per_file(project) -> None:
    result = parse_directory(project, ["rs", "ts"], granularity="coarse")

    assert len(result.entities) == 2
    assert {e.context.file_name for e in result.entities} == {"main.rs", "app.ts"}


def test_parse_directory_empty_result(tmp_path) -> None:
    result = parse_directory(tmp_path, ["rs"])
    assert result.entities == []
    assert result.files_found == 0


def test_parse_directory_missing_root_is_fatal(tmp_path) -> None:
    with pytest.raises(DiscoveryError):
        parse_directory(tmp_path / "missing", ["rs"])


def test_parse_file(project) -> None:
    names = [e.name for e in parse_file(project / "web" / "app.ts")]
    assert names == ["add"]


def test_index_directory_writes_pretty_json(project, tmp_path) -> None:
    output = tmp_path / "out" / "index.json"

    count = index_directory(project, [".rs"], output, granularity=Granularity.FINE)

    assert count == 3
    text = output.read_text(encoding="utf-8")
    assert text.startswith("[\n  {")
    data = json.loads(text)
    assert [d["kind"] for d in data] == ["Import", "Function", "Struct"]
    assert all("embedding" not in d for d in data)


def test_index_directory_writes_nothing_when_empty(tmp_path) -> None:
    output = tmp_path / "index.json"
    assert index_directory(tmp_path, ["rs"], output) == 0
    assert not output.exists()


@pytest.mark.asyncio
async def test_default_indexer_embeds_and_upserts(project, cfg, fake_embedder, store) -> None:
    indexer = DefaultIndexer(cfg, embedder=fake_embedder, store=store)

    report = await indexer.index(project, "code", extensions=["rs", "ts"])

    assert report.collection == "code"
    assert report.files_found == 3
    assert report.files_skipped == 1
    assert report.entities == 4
    assert report.embedded == 4
    assert report.unembedded == 0
    assert report.upserted == 4
    assert store.count("code") == 4


@pytest.mark.asyncio
async def test_report_counts_only_failed_entities_as_unembedded(
    cfg, fake_embedder, store, make_entity, monkeypatch, tmp_path
) -> None:
    ok = make_entity(name="ok", snippet="fn ok() {}")
    empty = make_entity(name="empty", snippet="")
    failing = make_entity(name="failing", snippet="fn failing() {}", line_from=3)
    fake_embedder.broken["fn failing() {}"] = EmbeddingError("rejected")
    monkeypatch.setattr(
        indexer_module,
        "parse_directory",
        lambda *args, **kwargs: ParseResult([ok, empty, failing], files_found=1),
    )

    report = await DefaultIndexer(cfg, embedder=fake_embedder, store=store).index(tmp_path, "code")

    assert report.entities == 3
    assert report.embedded == 1
    assert report.unembedded == 1
    assert report.upserted == 1


@pytest.mark.asyncio
async def test_build_index_with_nothing_to_index(tmp_path, cfg, fake_embedder, store) -> None:
    report = await build_index(tmp_path, cfg, "code", embedder=fake_embedder, store=store, extensions=["rs"])

    assert report.entities == 0
    assert report.upserted == 0
    assert fake_embedder.calls == []
    assert store.list_collections() == []


@pytest.mark.asyncio
async def test_indexer_without_credentials_fails_before_embedding(project, cfg, store) -> None:
    indexer = DefaultIndexer(cfg, store=store)
    with pytest.raises(EmbeddingConfigError):
        await indexer.index(project, "code", extensions=["rs"])
    assert store.list_collections() == []


@pytest.mark.asyncio
async def test_query_collection_after_indexing(project, cfg, fake_embedder, store) -> None:
    await build_index(project, cfg, "code", embedder=fake_embedder, store=store, extensions=["rs"])

    results = query_collection(cfg, "code", "greet someone", top_k=2, store=store)

    assert len(results) == 2
    assert all(e.embedding is None for e in results)
