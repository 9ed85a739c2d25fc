"""Tests for DocumentStore: CRUD, listing, comments and listener fan-out."""

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from scriptory.core.documents.store import DocumentStore
from scriptory.core.versions.log import VersionLog
from scriptory.errors import InvalidInputError, NotFoundError
from scriptory.storage import FileStore
from tests.unit.fakes import BrokenListener, FakeClock, RecordingListener


def test_create_document_writes_all_artifacts(store: DocumentStore, files: FileStore) -> None:
    doc = store.create_document("Getting Started", content="# Hi", tags=["intro"])

    assert doc.id == "getting-started"
    assert doc.icon == "📄"
    assert doc.favorite is False
    assert doc.created_at == doc.updated_at
    config = json.loads(files.path("getting-started/config.json").read_text(encoding="utf-8"))
    assert config["title"] == "Getting Started"
    assert config["tags"] == ["intro"]
    assert files.read_text("getting-started/content.mdx") == "# Hi"
    assert files.read_json("getting-started/comments.json") == []


def test_getting_started_round_trip(store: DocumentStore) -> None:
    store.create_document("Getting Started")

    listed = store.list_documents()
    assert [(s.id, s.title) for s in listed] == [("getting-started", "Getting Started")]
    doc = store.get_document("getting-started")
    assert doc.content == ""
    assert doc.comments == ()


def test_create_document_rejects_empty_title(store: DocumentStore) -> None:
    with pytest.raises(InvalidInputError):
        store.create_document("   ")


def test_colliding_titles_get_numeric_suffixes(store: DocumentStore) -> None:
    first = store.create_document("Notes", content="one")
    second = store.create_document("notes!", content="two")
    third = store.create_document("NOTES", content="three")

    assert [first.id, second.id, third.id] == ["notes", "notes-1", "notes-2"]
    assert store.get_document("notes").content == "one"


def test_title_without_alphanumerics_uses_fallback_id(store: DocumentStore) -> None:
    doc = store.create_document("🚀")

    assert doc.id == "untitled"
    assert doc.title == "🚀"


def test_concurrent_creates_never_share_an_id(store: DocumentStore) -> None:
    with ThreadPoolExecutor(max_workers=8) as pool:
        docs = list(pool.map(lambda i: store.create_document("Same", content=str(i)), range(16)))

    ids = [d.id for d in docs]
    assert len(set(ids)) == 16
    contents = {store.get_document(i).content for i in ids}
    assert contents == {str(i) for i in range(16)}


def test_get_document_missing_raises_not_found(store: DocumentStore) -> None:
    with pytest.raises(NotFoundError):
        store.get_document("nope")


def test_get_document_with_corrupt_config_raises_not_found(
    store: DocumentStore, files: FileStore
) -> None:
    store.create_document("Broken")
    files.path("broken/config.json").write_text("{oops", encoding="utf-8")

    with pytest.raises(NotFoundError):
        store.get_document("broken")


def test_listing_synthesizes_entry_for_corrupt_config(
    store: DocumentStore, files: FileStore
) -> None:
    store.create_document("Broken")
    files.path("broken/config.json").write_text("{oops", encoding="utf-8")

    listed = store.list_documents()
    assert len(listed) == 1
    assert listed[0].id == "broken"
    assert listed[0].title == "broken"
    assert listed[0].icon == "📄"
    assert listed[0].updated_at


def test_hand_made_folder_without_config_is_listed(store: DocumentStore, files: FileStore) -> None:
    files.path("manual").mkdir()
    (files.path("manual") / "content.mdx").write_text("hello", encoding="utf-8")

    assert [s.id for s in store.list_documents()] == ["manual"]


def test_listing_skips_directory_with_invalid_id(store: DocumentStore, files: FileStore) -> None:
    store.create_document("Good")
    (files.root / "odd\\name").mkdir()

    assert [s.id for s in store.list_documents()] == ["good"]


def test_last_editor_is_stored_in_config(store: DocumentStore, files: FileStore) -> None:
    doc = store.create_document("Notes", author="ann")
    assert doc.author == "ann"

    store.update_document("notes", icon="📘")
    assert store.get_document("notes").author == "ann"

    store.update_document("notes", content="more", author="bob")
    assert files.read_json("notes/config.json")["author"] == "bob"
    assert store.list_documents()[0].author == "bob"


def test_author_is_omitted_from_config_when_unknown(
    store: DocumentStore, files: FileStore
) -> None:
    store.create_document("Anon")

    assert "author" not in files.read_json("anon/config.json")
    assert store.get_document("anon").author == ""


def test_missing_content_and_comments_default_to_empty(
    store: DocumentStore, files: FileStore
) -> None:
    store.create_document("Sparse", content="body")
    files.remove_file("sparse/content.mdx")
    files.path("sparse/comments.json").write_text("garbage", encoding="utf-8")

    doc = store.get_document("sparse")
    assert doc.content == ""
    assert doc.comments == ()


def test_list_documents_orders_by_updated_desc(
    store: DocumentStore, fake_clock: FakeClock
) -> None:
    store.create_document("Old")
    fake_clock.advance(1000)
    store.create_document("New")
    fake_clock.advance(1000)
    store.update_document("old", icon="📘")

    assert [s.id for s in store.list_documents()] == ["old", "new"]


def test_list_documents_filters(store: DocumentStore) -> None:
    store.create_document("API Guide", tags=["api", "reference"])
    store.create_document("Recipes", tags=["food"])
    store.toggle_favorite("recipes")

    assert [s.id for s in store.list_documents(tag="api")] == ["api-guide"]
    assert [s.id for s in store.list_documents(favorites=True)] == ["recipes"]
    assert [s.id for s in store.list_documents(search="REFER")] == ["api-guide"]
    assert [s.id for s in store.list_documents(search="recip")] == ["recipes"]
    assert store.list_documents(tag="api", favorites=True) == []


def test_update_document_merges_fields(store: DocumentStore, fake_clock: FakeClock) -> None:
    created = store.create_document("Doc", tags=["a"])
    fake_clock.advance(5000)

    updated = store.update_document("doc", title="Renamed", tags=["b", "b"], favorite=True)

    assert updated.id == "doc"
    assert updated.title == "Renamed"
    assert updated.tags == ("b",)
    assert updated.favorite is True
    assert updated.created_at == created.created_at
    assert updated.updated_at > created.updated_at


def test_update_document_missing_raises_not_found(store: DocumentStore) -> None:
    with pytest.raises(NotFoundError):
        store.update_document("ghost", content="x")


def test_update_content_records_a_version(store: DocumentStore) -> None:
    store.create_document("Doc", content="v0")

    store.update_document("doc", content="v1")

    assert store.get_document("doc").content == "v1"
    versions = store.versions.list_versions("doc")
    assert [v.content for v in versions] == ["v1"]


def test_metadata_only_update_records_no_version(store: DocumentStore) -> None:
    store.create_document("Doc", content="v0")

    store.update_document("doc", icon="📘")

    assert store.versions.list_versions("doc") == []


def test_toggle_favorite_flips(store: DocumentStore) -> None:
    store.create_document("Doc")

    assert store.toggle_favorite("doc") is True
    assert store.toggle_favorite("doc") is False


def test_delete_document_removes_everything_and_is_idempotent(
    store: DocumentStore, files: FileStore
) -> None:
    store.create_document("Doc")
    store.update_document("doc", content="v1")

    assert store.delete_document("doc") is True
    assert not files.exists("doc")
    assert not files.exists(".versions/doc")
    assert store.delete_document("doc") is False
    with pytest.raises(NotFoundError):
        store.get_document("doc")


def test_list_tags_counts_usage(store: DocumentStore) -> None:
    store.create_document("One", tags=["api", "guide"])
    store.create_document("Two", tags=["api"])

    tags = store.list_tags()
    assert [(t.name, t.count) for t in tags] == [("api", 2), ("guide", 1)]


def test_recent_documents_limits_results(store: DocumentStore, fake_clock: FakeClock) -> None:
    for title in ["a-doc", "b-doc", "c-doc"]:
        store.create_document(title)
        fake_clock.advance(10)

    assert [s.id for s in store.recent_documents(limit=2)] == ["c-doc", "b-doc"]


def test_comments_and_replies(store: DocumentStore, fake_clock: FakeClock) -> None:
    store.create_document("Doc")
    first = store.add_comment("doc", "Looks good", author="ann")
    second = store.add_comment("doc", "Typo in intro", author="bob")
    reply = store.add_reply("doc", second.id, "Fixed", author="ann")

    assert first.id != second.id
    doc = store.get_document("doc")
    assert [c.text for c in doc.comments] == ["Looks good", "Typo in intro"]
    assert doc.comments[1].replies == (reply,)

    store.delete_comment("doc", first.id)
    assert [c.id for c in store.get_document("doc").comments] == [second.id]


def test_comment_errors(store: DocumentStore) -> None:
    store.create_document("Doc")

    with pytest.raises(InvalidInputError):
        store.add_comment("doc", "  ")
    with pytest.raises(NotFoundError):
        store.add_comment("ghost", "hi")
    with pytest.raises(NotFoundError):
        store.add_reply("doc", "123", "hi")
    with pytest.raises(NotFoundError):
        store.delete_comment("doc", "123")


def test_listeners_receive_saves_and_deletes(files: FileStore) -> None:
    listener = RecordingListener()
    store = DocumentStore(files, VersionLog(files), listeners=[listener])

    store.create_document("Doc", content="12345")
    store.update_document("doc", content="12")
    store.update_document("doc", icon="📘")
    store.delete_document("doc")

    assert listener.saved == [("doc", True, 5), ("doc", False, 3), ("doc", False, None)]
    assert listener.deleted == ["doc"]


def test_failing_listener_does_not_fail_the_write(files: FileStore) -> None:
    store = DocumentStore(files, VersionLog(files), listeners=[BrokenListener()])

    doc = store.create_document("Doc", content="body")
    store.delete_document(doc.id)

    assert not store.exists("doc")


def test_invalid_ids_are_rejected_before_touching_disk(store: DocumentStore, tmp_path: Path) -> None:
    with pytest.raises(InvalidInputError):
        store.get_document("../outside")
    with pytest.raises(InvalidInputError):
        store.delete_document(".versions")
    assert store.exists("../outside") is False
