"""One documentation directory with all of its stores wired together."""

from pathlib import Path
from typing import Any

from loguru import logger

from scriptory.config import load_user_config, save_user_config
from scriptory.core.analytics.engine import AnalyticsEngine
from scriptory.core.documents.store import DocumentStore
from scriptory.core.gitdocs.generator import generate_git_document
from scriptory.core.organization.collections import OrganizationStore
from scriptory.core.search.index import SearchIndex
from scriptory.core.versions.log import VersionLog
from scriptory.core.webhooks.registry import WebhookRegistry
from scriptory.models.document import Document, SearchHit
from scriptory.protocols import GitProtocol, HttpPoster
from scriptory.storage import FileStore

SAMPLE_DOC_TITLE = "Getting Started"
SAMPLE_DOC_ICON = "🚀"
SAMPLE_DOC_CONTENT = """\
# Welcome to scriptory

This is your first documentation page!

## Features

- 📝 Notion-like editor
- 📁 Organized documentation
- 🔍 Easy navigation
- ⚡ Fast and local

Start editing this page or create new ones from the sidebar.
"""


class WorkspaceListener:
    """Propagates committed document changes to the derived stores.

    Every step is best effort; the document store already logs and swallows
    listener failures.
    """

    def __init__(self, workspace: "Workspace") -> None:
        self._ws = workspace

    def document_saved(
        self, document: Document, *, created: bool, change_size: int | None
    ) -> None:
        ws = self._ws
        ws.search.index_from_document(document)
        if ws.track_edits and change_size is not None:
            ws.analytics.track_edit(document.id, ws.author, change_size)
        event = "document.created" if created else "document.updated"
        ws.webhooks.trigger(event, document.summary.to_dict())

    def document_deleted(self, doc_id: str) -> None:
        self._ws.search.remove_document(doc_id)
        self._ws.webhooks.trigger("document.deleted", {"id": doc_id})


class Workspace:
    """Composition root for a documentation directory.

    Components are constructed once and shared. Search results and
    collections are filtered against the live document listing, so ids left
    behind by deleted documents never surface.

    Args:
        docs_dir: The documentation directory (created on demand).
        author: Default last editor for saved documents, also used by edit tracking.
        track_edits: Record an analytics edit for every content save.
        http: HTTP client for webhook delivery (defaults to a requests session).
    """

    def __init__(
        self,
        docs_dir: str | Path,
        *,
        author: str | None = None,
        track_edits: bool = False,
        http: HttpPoster | None = None,
    ) -> None:
        self.files = FileStore(docs_dir)
        self.author = author
        self.track_edits = track_edits

        self.versions = VersionLog(self.files)
        self.documents = DocumentStore(self.files, self.versions, author=author)
        self.search = SearchIndex(self.files)
        self.analytics = AnalyticsEngine(self.files)
        self.organization = OrganizationStore(self.files)
        self.webhooks = WebhookRegistry(self.files, http=http)

        self.documents.add_listener(WorkspaceListener(self))
        logger.debug("Workspace ready at {}", self.files.root)

    @property
    def docs_dir(self) -> Path:
        return self.files.root

    def document_ids(self) -> set[str]:
        return {s.id for s in self.documents.list_documents()}

    def init_project(self) -> Document | None:
        """Create the docs directory and the sample document.

        Returns:
            The sample document if it was created, None if it already existed.
        """
        self.files.ensure_dir()
        config = load_user_config()
        config["initialized"] = True
        try:
            save_user_config(config)
        except OSError:
            logger.opt(exception=True).warning("Could not update user config")

        if any(s.title == SAMPLE_DOC_TITLE for s in self.documents.list_documents()):
            return None
        return self.documents.create_document(
            SAMPLE_DOC_TITLE, icon=SAMPLE_DOC_ICON, content=SAMPLE_DOC_CONTENT
        )

    def search_documents(self, query: str, **filters: Any) -> list[SearchHit]:
        """Search the index, dropping hits for documents that no longer exist."""
        hits = self.search.search(query, **filters)
        live = self.document_ids()
        return [h for h in hits if h.id in live]

    def get_collections(self) -> dict[str, Any]:
        return self.organization.get_collections(existing_ids=self.document_ids())

    def reindex(self) -> int:
        """Rebuild the search index from every document on disk."""
        documents = []
        for summary in self.documents.list_documents():
            try:
                documents.append(self.documents.get_document(summary.id))
            except LookupError:
                logger.warning("Skipping unreadable document {}", summary.id)
        return self.search.reindex_all(documents)

    def generate_git_docs(
        self, git: GitProtocol, files: list[str], *, include_staged: bool = False
    ) -> Document:
        return generate_git_document(self.documents, git, files, include_staged=include_staged)
