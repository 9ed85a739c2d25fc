"""Tests for FileStore, the root-confined file access layer."""

import json
import os
from pathlib import Path

import pytest

from scriptory.errors import StorageError
from scriptory.storage import FileStore


def test_path_rejects_absolute_names(tmp_path: Path) -> None:
    files = FileStore(tmp_path)

    with pytest.raises(ValueError, match="must be relative"):
        files.path("/etc/passwd")


def test_path_rejects_escape_from_root(tmp_path: Path) -> None:
    files = FileStore(tmp_path / "docs")

    with pytest.raises(ValueError, match="escapes root"):
        files.path("../outside.json")


def test_write_json_is_pretty_printed_with_trailing_newline(tmp_path: Path) -> None:
    files = FileStore(tmp_path)
    files.write_json("sub/data.json", {"title": "Café", "n": 1})

    text = (tmp_path / "sub" / "data.json").read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert "Café" in text
    assert json.loads(text) == {"title": "Café", "n": 1}


def test_write_text_skips_unchanged_contents(tmp_path: Path) -> None:
    files = FileStore(tmp_path)
    files.write_text("a.txt", "same")
    os.utime(tmp_path / "a.txt", ns=(0, 0))
    files.write_text("a.txt", "same")
    assert (tmp_path / "a.txt").stat().st_mtime_ns == 0

    files.write_text("a.txt", "different")
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "different"


def test_read_text_missing_file_raises_file_not_found(tmp_path: Path) -> None:
    files = FileStore(tmp_path)

    with pytest.raises(FileNotFoundError):
        files.read_text("missing.txt")


def test_read_json_corrupt_file_raises_storage_error(tmp_path: Path) -> None:
    (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")
    files = FileStore(tmp_path)

    with pytest.raises(StorageError, match="Corrupt JSON"):
        files.read_json("bad.json")


def test_try_read_json_returns_none_for_missing_or_corrupt(tmp_path: Path) -> None:
    (tmp_path / "bad.json").write_text("[1, 2", encoding="utf-8")
    files = FileStore(tmp_path)

    assert files.try_read_json("bad.json") is None
    assert files.try_read_json("missing.json") is None


def test_list_dirs_skips_hidden_directories_and_files(tmp_path: Path) -> None:
    (tmp_path / "beta").mkdir()
    (tmp_path / "alpha").mkdir()
    (tmp_path / ".versions").mkdir()
    (tmp_path / ".search-index.json").write_text("{}", encoding="utf-8")
    files = FileStore(tmp_path)

    assert files.list_dirs() == ["alpha", "beta"]


def test_list_dirs_of_missing_root_is_empty(tmp_path: Path) -> None:
    files = FileStore(tmp_path / "nowhere")

    assert files.list_dirs() == []


def test_list_files_filters_by_suffix(tmp_path: Path) -> None:
    (tmp_path / "v").mkdir()
    (tmp_path / "v" / "2.json").write_text("{}", encoding="utf-8")
    (tmp_path / "v" / "1.json").write_text("{}", encoding="utf-8")
    (tmp_path / "v" / "notes.txt").write_text("", encoding="utf-8")
    files = FileStore(tmp_path)

    assert files.list_files("v", suffix=".json") == ["1.json", "2.json"]


def test_remove_tree_reports_whether_anything_was_removed(tmp_path: Path) -> None:
    (tmp_path / "doc" / "nested").mkdir(parents=True)
    files = FileStore(tmp_path)

    assert files.remove_tree("doc") is True
    assert not (tmp_path / "doc").exists()
    assert files.remove_tree("doc") is False


def test_remove_tree_refuses_root(tmp_path: Path) -> None:
    files = FileStore(tmp_path)

    with pytest.raises(ValueError, match="root"):
        files.remove_tree(".")
