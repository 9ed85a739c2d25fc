"""Protocols for dependency injection between scriptory components."""

from typing import Any, Protocol, runtime_checkable

from scriptory.models.document import Document


@runtime_checkable
class DocumentListener(Protocol):
    """Receives notifications after the document store commits a change."""

    def document_saved(
        self, document: Document, *, created: bool, change_size: int | None
    ) -> None:
        """Called after a document was created or updated.

        change_size is the body length delta, or None if the body was not written.
        """
        ...

    def document_deleted(self, doc_id: str) -> None:
        """Called after a document was deleted."""
        ...


@runtime_checkable
class GitProtocol(Protocol):
    """Read-only view of the git repository the docs live in."""

    def branch(self) -> str:
        """Name of the current branch."""
        ...

    def author(self) -> str:
        """Configured user.name."""
        ...

    def email(self) -> str:
        """Configured user.email."""
        ...

    def last_commit_message(self) -> str | None:
        """Subject of HEAD, or None if there are no commits."""
        ...

    def diff(self, path: str) -> str:
        """Diff of a path against HEAD."""
        ...

    def read_file(self, path: str) -> str | None:
        """Current working-tree contents of a path, or None if unreadable."""
        ...


@runtime_checkable
class HttpPoster(Protocol):
    """Minimal HTTP client used to deliver webhooks."""

    def post(self, url: str, *, json: Any, timeout: float) -> Any:
        """POST a JSON body and return a response with raise_for_status()."""
        ...
