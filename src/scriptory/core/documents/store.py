"""Authoritative CRUD over documents stored as directories on disk.

Layout of one document::

    <docs>/<doc-id>/config.json     metadata, the listing source of truth
    <docs>/<doc-id>/content.mdx     raw body
    <docs>/<doc-id>/comments.json   whole comment array

The store is the only writer of these files. Content changes are snapshotted
into the version log; listeners are told about every committed change.
"""

import os
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import PurePosixPath

from loguru import logger

from scriptory import clock
from scriptory.config import DEFAULT_ICON
from scriptory.core.documents.ids import candidate_ids, validate_id
from scriptory.core.documents.locks import KeyedLocks
from scriptory.core.versions.log import VersionLog
from scriptory.errors import InvalidInputError, NotFoundError, StorageError
from scriptory.models.document import (
    Comment,
    Document,
    DocumentSummary,
    Reply,
    TagCount,
    normalize_tags,
)
from scriptory.protocols import DocumentListener
from scriptory.storage import FileStore

CONFIG_FILE = "config.json"
CONTENT_FILE = "content.mdx"
COMMENTS_FILE = "comments.json"

# Serializes id allocation between concurrent creates.
_CREATE_LOCK_KEY = ".create"


def _sort_key(summary: DocumentSummary) -> datetime:
    try:
        return clock.parse_iso(summary.updated_at)
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)


class DocumentStore:
    """File-backed document store.

    Operations on the same document id are serialized by a per-id lock; there
    is no cross-document transaction. Writes inside one operation are
    independent file writes: config first, so a crash leaves a listable
    document.
    """

    def __init__(
        self,
        files: FileStore,
        versions: VersionLog,
        *,
        listeners: Iterable[DocumentListener] = (),
        author: str | None = None,
    ) -> None:
        self._files = files
        self.versions = versions
        self.author = author
        self._listeners: list[DocumentListener] = list(listeners)
        self._locks = KeyedLocks()

    def add_listener(self, listener: DocumentListener) -> None:
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # Paths and raw artifacts
    # -------------------------------------------------------------------------

    def _doc_file(self, doc_id: str, name: str) -> PurePosixPath:
        return PurePosixPath(validate_id(doc_id)) / name

    def _read_config(self, doc_id: str) -> dict:
        """Read config.json for a point lookup.

        Raises:
            NotFoundError: If the file is missing or unparsable.
        """
        try:
            config = self._files.read_json(self._doc_file(doc_id, CONFIG_FILE))
        except FileNotFoundError as e:
            msg = f"Document {doc_id!r} not found"
            raise NotFoundError(msg) from e
        except StorageError as e:
            msg = f"Document {doc_id!r} not found ({e})"
            raise NotFoundError(msg) from e
        if not isinstance(config, dict):
            msg = f"Document {doc_id!r} not found (config is not an object)"
            raise NotFoundError(msg)
        return config

    def _read_content(self, doc_id: str) -> str:
        try:
            return self._files.read_text(self._doc_file(doc_id, CONTENT_FILE))
        except FileNotFoundError:
            return ""
        except StorageError as e:
            logger.warning("Ignoring unreadable content: {}", e)
            return ""

    def _read_comments(self, doc_id: str) -> list[Comment]:
        data = self._files.try_read_json(self._doc_file(doc_id, COMMENTS_FILE))
        if not isinstance(data, list):
            return []
        return [Comment.from_dict(c) for c in data if isinstance(c, dict)]

    def _write_comments(self, doc_id: str, comments: list[Comment]) -> None:
        self._files.write_json(
            self._doc_file(doc_id, COMMENTS_FILE), [c.to_dict() for c in comments]
        )

    def _synthesized_summary(self, doc_id: str) -> DocumentSummary:
        """Stand-in listing entry for a document whose config cannot be read."""
        try:
            mtime = os.path.getmtime(self._files.path(doc_id))
            stamp = clock.ms_to_iso(int(mtime * 1000))
        except OSError:
            stamp = clock.now_iso()
        return DocumentSummary(
            id=doc_id, title=doc_id, icon=DEFAULT_ICON, created_at=stamp, updated_at=stamp
        )

    def exists(self, doc_id: str) -> bool:
        try:
            return self._files.exists(self._doc_file(doc_id, CONFIG_FILE))
        except ValueError:
            return False

    # -------------------------------------------------------------------------
    # Read operations
    # -------------------------------------------------------------------------

    def list_documents(
        self,
        *,
        tag: str | None = None,
        favorites: bool = False,
        search: str | None = None,
    ) -> list[DocumentSummary]:
        """List document summaries, most recently updated first.

        Args:
            tag: Only documents carrying exactly this tag.
            favorites: Only favorite documents.
            search: Case-insensitive substring of the title or of any tag.
        """
        summaries = []
        for doc_id in self._files.list_dirs():
            try:
                config_file = self._doc_file(doc_id, CONFIG_FILE)
            except InvalidInputError:
                logger.warning("Skipping directory with an invalid document id: {!r}", doc_id)
                continue
            config = self._files.try_read_json(config_file)
            if isinstance(config, dict):
                summaries.append(DocumentSummary.from_config(doc_id, config))
            else:
                summaries.append(self._synthesized_summary(doc_id))

        if tag:
            summaries = [s for s in summaries if tag in s.tags]
        if favorites:
            summaries = [s for s in summaries if s.favorite]
        if search:
            needle = search.lower()
            summaries = [
                s
                for s in summaries
                if needle in s.title.lower() or any(needle in t.lower() for t in s.tags)
            ]

        summaries.sort(key=_sort_key, reverse=True)
        return summaries

    def get_document(self, doc_id: str) -> Document:
        """Load a document with its body and comments.

        Raises:
            NotFoundError: If the metadata file is absent or unparsable.
        """
        summary = DocumentSummary.from_config(doc_id, self._read_config(doc_id))
        return Document(
            **vars(summary),
            content=self._read_content(doc_id),
            comments=tuple(self._read_comments(doc_id)),
        )

    def list_tags(self) -> list[TagCount]:
        """Every tag in use with its document count, most used first."""
        counts: dict[str, int] = {}
        for summary in self.list_documents():
            for t in summary.tags:
                counts[t] = counts.get(t, 0) + 1
        return [
            TagCount(name=name, count=count)
            for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        ]

    def recent_documents(self, limit: int = 5) -> list[DocumentSummary]:
        return self.list_documents()[: max(0, limit)]

    # -------------------------------------------------------------------------
    # Write operations
    # -------------------------------------------------------------------------

    def create_document(
        self,
        title: str,
        *,
        icon: str | None = None,
        content: str = "",
        tags: Iterable[str] = (),
        author: str | None = None,
    ) -> Document:
        """Create a document whose id is derived from its title.

        A title whose slug is already taken gets a numeric suffix
        ("notes", "notes-1", "notes-2", ...); existing documents are never
        overwritten. The author (or the store default) is kept as the last
        editor.

        Raises:
            InvalidInputError: If the title is empty.
            StorageError: If the document could not be written.
        """
        if not isinstance(title, str) or not title.strip():
            msg = "Document title must not be empty"
            raise InvalidInputError(msg)

        self._files.ensure_dir()
        with self._locks.hold(_CREATE_LOCK_KEY):
            doc_id = self._allocate_id(title)

        now = clock.now_iso()
        document = Document(
            id=doc_id,
            title=title,
            icon=icon or DEFAULT_ICON,
            tags=normalize_tags(list(tags)),
            favorite=False,
            created_at=now,
            updated_at=now,
            author=author or self.author or "",
            content=content,
            comments=(),
        )
        with self._locks.hold(doc_id):
            self._files.write_json(self._doc_file(doc_id, CONFIG_FILE), document.config_dict())
            self._files.write_text(self._doc_file(doc_id, CONTENT_FILE), content)
            self._write_comments(doc_id, [])

        logger.info("Created document {}", doc_id)
        self._notify_saved(document, created=True, change_size=len(content))
        return document

    def _allocate_id(self, title: str) -> str:
        """Claim the first free id by creating its directory."""
        for doc_id in candidate_ids(title):
            try:
                self._files.path(doc_id).mkdir()
            except FileExistsError:
                continue
            except OSError as e:
                msg = f"Cannot create document directory {doc_id!r}: {e}"
                raise StorageError(msg) from e
            return doc_id
        msg = f"No free document id for title {title!r}"
        raise StorageError(msg)

    def update_document(
        self,
        doc_id: str,
        *,
        title: str | None = None,
        icon: str | None = None,
        tags: Iterable[str] | None = None,
        favorite: bool | None = None,
        content: str | None = None,
        author: str | None = None,
    ) -> Document:
        """Merge the supplied fields into a document.

        Any metadata change refreshes updatedAt. Supplying content overwrites
        the body and appends a version. A known author (argument or store
        default) replaces the recorded last editor.

        Raises:
            NotFoundError: If the document does not exist.
            InvalidInputError: If title is supplied but empty.
        """
        if title is not None and not title.strip():
            msg = "Document title must not be empty"
            raise InvalidInputError(msg)

        with self._locks.hold(doc_id):
            config = self._read_config(doc_id)
            if title is not None:
                config["title"] = title
            if icon is not None:
                config["icon"] = icon
            if tags is not None:
                config["tags"] = list(normalize_tags(list(tags)))
            if favorite is not None:
                config["favorite"] = bool(favorite)
            editor = author or self.author
            if editor:
                config["author"] = editor
            config["updatedAt"] = clock.now_iso()
            self._files.write_json(self._doc_file(doc_id, CONFIG_FILE), config)

            change_size = None
            if content is not None:
                change_size = abs(len(content) - len(self._read_content(doc_id)))
                self._files.write_text(self._doc_file(doc_id, CONTENT_FILE), content)
                self.versions.record_version(doc_id, content)

            document = self.get_document(doc_id)

        logger.debug("Updated document {}", doc_id)
        self._notify_saved(document, created=False, change_size=change_size)
        return document

    def toggle_favorite(self, doc_id: str) -> bool:
        """Flip the favorite flag. Returns the new value.

        Raises:
            NotFoundError: If the document does not exist.
        """
        with self._locks.hold(doc_id):
            config = self._read_config(doc_id)
            config["favorite"] = not bool(config.get("favorite", False))
            config["updatedAt"] = clock.now_iso()
            self._files.write_json(self._doc_file(doc_id, CONFIG_FILE), config)
            document = self.get_document(doc_id)

        self._notify_saved(document, created=False, change_size=None)
        return document.favorite

    def restore_version(self, doc_id: str, timestamp: int) -> Document:
        """Make a stored version the live content again.

        Raises:
            NotFoundError: If the document or the version does not exist.
        """
        with self._locks.hold(doc_id):
            config = self._read_config(doc_id)
            content = self.versions.restore_version(doc_id, timestamp)
            change_size = abs(len(content) - len(self._read_content(doc_id)))
            self._files.write_text(self._doc_file(doc_id, CONTENT_FILE), content)
            config["updatedAt"] = clock.now_iso()
            self._files.write_json(self._doc_file(doc_id, CONFIG_FILE), config)
            document = self.get_document(doc_id)

        logger.info("Restored {} to version {}", doc_id, timestamp)
        self._notify_saved(document, created=False, change_size=change_size)
        return document

    def delete_document(self, doc_id: str) -> bool:
        """Remove a document and its version history.

        Deleting a missing document is a no-op. Returns whether anything was
        removed.
        """
        validate_id(doc_id)
        with self._locks.hold(doc_id):
            removed = self._files.remove_tree(doc_id)
            self.versions.delete_versions(doc_id)

        if removed:
            logger.info("Deleted document {}", doc_id)
            self._notify_deleted(doc_id)
        return removed

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    def _unique_comment_id(self, taken: set[str]) -> str:
        stamp = clock.now_ms()
        while str(stamp) in taken:
            stamp += 1
        return str(stamp)

    def add_comment(self, doc_id: str, text: str, author: str = "") -> Comment:
        """Append a comment to a document.

        Raises:
            NotFoundError: If the document does not exist.
            InvalidInputError: If text is empty.
        """
        if not text or not text.strip():
            msg = "Comment text must not be empty"
            raise InvalidInputError(msg)
        with self._locks.hold(doc_id):
            self._read_config(doc_id)
            comments = self._read_comments(doc_id)
            comment = Comment(
                id=self._unique_comment_id({c.id for c in comments}),
                text=text,
                author=author,
                created_at=clock.now_iso(),
            )
            comments.append(comment)
            self._write_comments(doc_id, comments)
        return comment

    def add_reply(self, doc_id: str, comment_id: str, text: str, author: str = "") -> Reply:
        """Append a reply to a comment.

        Raises:
            NotFoundError: If the document or comment does not exist.
            InvalidInputError: If text is empty.
        """
        if not text or not text.strip():
            msg = "Reply text must not be empty"
            raise InvalidInputError(msg)
        with self._locks.hold(doc_id):
            self._read_config(doc_id)
            comments = self._read_comments(doc_id)
            for i, comment in enumerate(comments):
                if comment.id == comment_id:
                    break
            else:
                msg = f"Comment {comment_id!r} not found on document {doc_id!r}"
                raise NotFoundError(msg)

            reply = Reply(
                id=self._unique_comment_id({r.id for r in comment.replies}),
                text=text,
                author=author,
                created_at=clock.now_iso(),
            )
            comments[i] = Comment(
                id=comment.id,
                text=comment.text,
                author=comment.author,
                created_at=comment.created_at,
                replies=(*comment.replies, reply),
            )
            self._write_comments(doc_id, comments)
        return reply

    def delete_comment(self, doc_id: str, comment_id: str) -> None:
        """Remove a comment and its replies.

        Raises:
            NotFoundError: If the document or comment does not exist.
        """
        with self._locks.hold(doc_id):
            self._read_config(doc_id)
            comments = self._read_comments(doc_id)
            remaining = [c for c in comments if c.id != comment_id]
            if len(remaining) == len(comments):
                msg = f"Comment {comment_id!r} not found on document {doc_id!r}"
                raise NotFoundError(msg)
            self._write_comments(doc_id, remaining)

    # -------------------------------------------------------------------------
    # Listener fan-out
    # -------------------------------------------------------------------------

    def _notify_saved(
        self, document: Document, *, created: bool, change_size: int | None
    ) -> None:
        for listener in self._listeners:
            try:
                listener.document_saved(document, created=created, change_size=change_size)
            except Exception:
                logger.opt(exception=True).warning(
                    "Listener {} failed for {}", type(listener).__name__, document.id
                )

    def _notify_deleted(self, doc_id: str) -> None:
        for listener in self._listeners:
            try:
                listener.document_deleted(doc_id)
            except Exception:
                logger.opt(exception=True).warning(
                    "Listener {} failed for deletion of {}", type(listener).__name__, doc_id
                )
