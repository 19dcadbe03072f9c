"""Shared fixtures: a throwaway git project and a scripted engine."""

from __future__ import annotations

from pathlib import Path

import pytest

from claippy.commands import dispatch
from claippy.config import ClaippyConfig
from claippy.core import Claippy


class FakeEngine:
    """Yields canned chunks, optionally failing after them."""

    def __init__(self, chunks=("hello",), error: Exception | None = None):
        self.chunks = list(chunks)
        self.error = error
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return "fake"

    def stream(self, messages, *, context=None, system_prompt=None):
        self.calls.append({"messages": list(messages), "context": context})
        yield from self.chunks
        if self.error is not None:
            raise self.error


def run(app: Claippy, name: str, *args: str) -> str:
    return "".join(dispatch(app, name, list(args)))


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    root = tmp_path / "project"
    (root / ".git").mkdir(parents=True)
    (root / "src").mkdir()
    (root / "src" / "a.rs").write_text("fn main() {}\n")
    (root / "src" / "b.rs").write_text("pub fn b() {}\n")
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def config(project: Path) -> ClaippyConfig:
    return ClaippyConfig(data_dir=project / ".claippy")


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def app(config: ClaippyConfig, engine: FakeEngine) -> Claippy:
    return Claippy(config, engine=engine)
