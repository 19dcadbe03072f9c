"""Tests for context entry resolution and rendering."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from claippy.conversation.context import MAX_CONTEXT_CHARS, ContextStore, is_url
from claippy.conversation.models import ContextEntry, Conversation
from claippy.errors import InvalidReference


@pytest.fixture
def contexts(project: Path) -> ContextStore:
    return ContextStore(project)


@pytest.fixture
def conv() -> Conversation:
    return Conversation(id="proj1")


class TestResolve:
    def test_relative_file(self, contexts: ContextStore):
        assert contexts.resolve("src/a.rs") == ContextEntry(kind="file", ref="src/a.rs")

    def test_canonicalizes_dot_segments(self, contexts: ContextStore):
        assert contexts.resolve("./src/../src/a.rs").ref == "src/a.rs"

    def test_relative_to_project_root_from_subdir(
        self, contexts: ContextStore, project: Path, monkeypatch
    ):
        monkeypatch.chdir(project / "src")
        assert contexts.resolve("a.rs").ref == "src/a.rs"

    def test_file_outside_project_is_absolute(self, contexts: ContextStore, tmp_path: Path):
        outside = tmp_path / "notes.txt"
        outside.write_text("x")
        entry = contexts.resolve(str(outside))
        assert entry.ref == outside.resolve().as_posix()

    def test_url(self, contexts: ContextStore):
        entry = contexts.resolve(" https://example.com/docs?a=1 ")
        assert entry == ContextEntry(kind="url", ref="https://example.com/docs?a=1")

    def test_malformed_url(self, contexts: ContextStore):
        with pytest.raises(InvalidReference, match="invalid URL"):
            contexts.resolve("http://[::1")

    def test_url_without_host(self, contexts: ContextStore):
        with pytest.raises(InvalidReference, match="invalid URL"):
            contexts.resolve("https://")

    def test_unsupported_scheme(self, contexts: ContextStore):
        with pytest.raises(InvalidReference, match="unsupported URL scheme: ftp"):
            contexts.resolve("ftp://example.com/file")

    def test_missing_file(self, contexts: ContextStore):
        with pytest.raises(InvalidReference, match="no such file"):
            contexts.resolve("src/missing.rs")

    def test_directory(self, contexts: ContextStore):
        with pytest.raises(InvalidReference, match="not a regular file"):
            contexts.resolve("src")

    def test_empty(self, contexts: ContextStore):
        with pytest.raises(InvalidReference):
            contexts.resolve("  ")

    def test_is_url(self):
        assert is_url("http://a")
        assert is_url("s3+https://bucket/key")
        assert not is_url("src/a.rs")
        assert not is_url("C:/Users/x")


class TestAdd:
    def test_duplicate_within_batch(self, contexts: ContextStore, conv: Conversation):
        added = contexts.add(conv, ["src/a.rs", "src/a.rs"])
        assert [e.ref for e in added] == ["src/a.rs"]
        assert contexts.list(conv) == [ContextEntry(kind="file", ref="src/a.rs")]

    def test_idempotent(self, contexts: ContextStore, conv: Conversation):
        contexts.add(conv, ["src/a.rs"])
        again = contexts.add(conv, ["./src/a.rs"])
        assert again == []
        assert len(conv.context) == 1

    def test_skips_invalid_without_aborting(self, contexts: ContextStore, conv: Conversation):
        skipped: list[str] = []
        added = contexts.add(
            conv,
            ["src/missing.rs", "src/b.rs", "https://example.com"],
            on_invalid=lambda ref, e: skipped.append(ref),
        )
        assert [e.ref for e in added] == ["src/b.rs", "https://example.com"]
        assert skipped == ["src/missing.rs"]

    def test_skips_malformed_url(self, contexts: ContextStore, conv: Conversation):
        skipped: list[InvalidReference] = []
        added = contexts.add(
            conv, ["http://[::1", "src/a.rs"], on_invalid=lambda ref, e: skipped.append(e)
        )
        assert [e.ref for e in added] == ["src/a.rs"]
        assert [(e.reference, e.reason) for e in skipped] == [("http://[::1", "invalid URL")]

    def test_insertion_order(self, contexts: ContextStore, conv: Conversation):
        contexts.add(conv, ["src/b.rs"])
        contexts.add(conv, ["src/a.rs"])
        assert [e.ref for e in contexts.list(conv)] == ["src/b.rs", "src/a.rs"]


class TestRemove:
    def test_missing_is_noop(self, contexts: ContextStore, conv: Conversation):
        contexts.add(conv, ["src/a.rs"])
        before = list(conv.context)
        assert contexts.remove(conv, ["src/missing.rs"]) == []
        assert conv.context == before

    def test_removes_normalized_match(self, contexts: ContextStore, conv: Conversation):
        contexts.add(conv, ["src/a.rs", "src/b.rs"])
        removed = contexts.remove(conv, ["./src/a.rs"])
        assert [e.ref for e in removed] == ["src/a.rs"]
        assert [e.ref for e in conv.context] == ["src/b.rs"]

    def test_removes_deleted_file(
        self, contexts: ContextStore, conv: Conversation, project: Path
    ):
        contexts.add(conv, ["src/a.rs"])
        (project / "src" / "a.rs").unlink()
        assert [e.ref for e in contexts.remove(conv, ["src/a.rs"])] == ["src/a.rs"]


class TestRender:
    def test_file_document(self, contexts: ContextStore, conv: Conversation):
        contexts.add(conv, ["src/a.rs"])
        rendered = contexts.render(conv)
        assert rendered.startswith('<document source="src/a.rs">')
        assert "fn main() {}" in rendered

    def test_empty(self, contexts: ContextStore, conv: Conversation):
        assert contexts.render(conv) == ""

    def test_deleted_file_marked_unavailable(
        self, contexts: ContextStore, conv: Conversation, project: Path
    ):
        contexts.add(conv, ["src/a.rs", "src/b.rs"])
        (project / "src" / "a.rs").unlink()
        rendered = contexts.render(conv)
        assert 'source="src/a.rs" unavailable="true"' in rendered
        assert "pub fn b() {}" in rendered

    def test_truncates_large_file(
        self, contexts: ContextStore, conv: Conversation, project: Path
    ):
        (project / "big.txt").write_text("x" * (MAX_CONTEXT_CHARS + 10))
        contexts.add(conv, ["big.txt"])
        assert len(contexts.read(conv.context[0])) == MAX_CONTEXT_CHARS

    def test_url_fetched(self, contexts: ContextStore, conv: Conversation, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/missing":
                return httpx.Response(404)
            return httpx.Response(200, text="remote docs")

        real_client = httpx.Client
        monkeypatch.setattr(
            httpx,
            "Client",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        contexts.add(conv, ["https://example.com/docs", "https://example.com/missing"])
        rendered = contexts.render(conv)
        assert '<document source="https://example.com/docs">\nremote docs\n</document>' in rendered
        assert 'source="https://example.com/missing" unavailable="true"' in rendered

    def test_stored_malformed_url_marked_unavailable(
        self, contexts: ContextStore, conv: Conversation
    ):
        conv.context.append(ContextEntry(kind="url", ref="http://[::1"))
        contexts.add(conv, ["src/a.rs"])
        rendered = contexts.render(conv)
        assert 'source="http://[::1" unavailable="true"' in rendered
        assert "fn main() {}" in rendered
