"""Tests for Workspace wiring between the stores."""

from pathlib import Path

from scriptory.config import load_user_config
from scriptory.workspace import SAMPLE_DOC_TITLE, Workspace
from tests.unit.fakes import FakeClock, FakeGit, FakeHttp


def test_init_project_creates_sample_once(workspace: Workspace) -> None:
    sample = workspace.init_project()

    assert sample is not None
    assert sample.id == "getting-started"
    assert sample.title == SAMPLE_DOC_TITLE
    assert "# Welcome to scriptory" in sample.content
    assert workspace.docs_dir.is_dir()
    assert load_user_config()["initialized"] is True

    assert workspace.init_project() is None
    assert len(workspace.documents.list_documents()) == 1


def test_saves_refresh_the_search_index(workspace: Workspace) -> None:
    workspace.documents.create_document("API Guide", content="authentication basics")
    workspace.documents.update_document("api-guide", content="rate limits")

    assert [h.id for h in workspace.search_documents("limits")] == ["api-guide"]
    assert workspace.search_documents("authentication") == []


def test_delete_removes_index_entry(workspace: Workspace) -> None:
    workspace.documents.create_document("Doomed", content="ephemeral")

    workspace.documents.delete_document("doomed")

    assert workspace.search.get_entry("doomed") is None
    assert workspace.search_documents("ephemeral") == []


def test_search_hides_documents_deleted_behind_its_back(workspace: Workspace) -> None:
    workspace.documents.create_document("Ghost", content="boo")
    workspace.files.remove_tree("ghost")

    assert workspace.search.get_entry("ghost") is not None
    assert workspace.search_documents("ghost") == []


def test_edit_tracking_is_opt_in(tmp_path: Path, fake_clock: FakeClock) -> None:
    plain = Workspace(tmp_path / "plain")
    plain.documents.create_document("Doc", content="abc")
    assert plain.analytics.get_edits() == []

    tracked = Workspace(tmp_path / "tracked", author="ann", track_edits=True)
    tracked.documents.create_document("Doc", content="abc")
    tracked.documents.update_document("doc", content="abcdef")
    tracked.documents.update_document("doc", icon="📘")

    edits = tracked.analytics.get_edits()
    assert [(e["author"], e["changeSize"]) for e in edits] == [("ann", 3), ("ann", 3)]
    assert tracked.search.get_entry("doc")["metadata"]["author"] == "ann"


def test_author_filter_survives_reindex(tmp_path: Path, fake_clock: FakeClock) -> None:
    ws = Workspace(tmp_path / "docs", author="ann", track_edits=True)
    ws.documents.create_document("Release plan", content="ship it")
    ws.documents.create_document("Release notes", content="what shipped", author="bob")

    before = [h.id for h in ws.search_documents("release author:ann")]
    assert before == ["release-plan"]

    assert ws.reindex() == 2
    assert [h.id for h in ws.search_documents("release author:ann")] == before
    assert [h.id for h in ws.search_documents("release author:bob")] == ["release-notes"]

    fresh = Workspace(tmp_path / "docs")
    fresh.reindex()
    assert [h.id for h in fresh.search_documents("release author:ann")] == before


def test_document_events_fire_webhooks(workspace: Workspace, http: FakeHttp) -> None:
    workspace.webhooks.register_webhook("https://example.com/hook")

    workspace.documents.create_document("Doc")
    workspace.documents.toggle_favorite("doc")
    workspace.documents.delete_document("doc")

    assert http.events() == ["document.created", "document.updated", "document.deleted"]
    created = http.posts[0][1]["data"]
    assert created["id"] == "doc"
    assert "content" not in created


def test_collections_drop_deleted_documents(workspace: Workspace) -> None:
    workspace.documents.create_document("Keep")
    workspace.documents.create_document("Drop")
    workspace.organization.star_document("keep")
    workspace.organization.star_document("drop")

    workspace.documents.delete_document("drop")

    assert workspace.get_collections()["starred"] == ["keep"]


def test_reindex_rebuilds_from_disk(workspace: Workspace) -> None:
    workspace.documents.create_document("One", content="alpha")
    workspace.documents.create_document("Two", content="beta")
    workspace.files.remove_file(".search-index.json")
    workspace.search.reload()

    assert workspace.reindex() == 2
    assert [h.id for h in workspace.search_documents("beta")] == ["two"]


def test_generate_git_docs_goes_through_the_store(workspace: Workspace) -> None:
    git = FakeGit(diffs={"a.py": "+x"}, contents={"a.py": "x"})

    doc = workspace.generate_git_docs(git, ["a.py"])

    assert [h.id for h in workspace.search_documents("git changes")] == [doc.id]
