"""Shared test fixtures."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from scriptory.core.documents.store import DocumentStore
from scriptory.core.versions.log import VersionLog
from scriptory.storage import FileStore
from scriptory.workspace import Workspace
from tests.unit.fakes import START_MS, FakeClock, FakeHttp


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user config and docs dir lookups inside the test's tmp_path."""
    monkeypatch.setenv("SCRIPTORY_CONFIG_DIR", str(tmp_path / "user-config"))
    monkeypatch.delenv("SCRIPTORY_DOCS_DIR", raising=False)


@pytest.fixture
def fake_clock() -> Iterator[FakeClock]:
    """Freeze scriptory.clock at START_MS; advance with fake_clock.advance()."""
    clock = FakeClock(START_MS)
    with patch("scriptory.clock.now_ms", new=clock):
        yield clock


@pytest.fixture
def files(tmp_path: Path) -> FileStore:
    docs = tmp_path / "docs"
    docs.mkdir()
    return FileStore(docs)


@pytest.fixture
def store(files: FileStore) -> DocumentStore:
    return DocumentStore(files, VersionLog(files))


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def workspace(tmp_path: Path, http: FakeHttp) -> Workspace:
    return Workspace(tmp_path / "scriptory", http=http)
