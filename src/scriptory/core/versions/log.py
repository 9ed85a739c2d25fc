"""Bounded snapshot history per document."""

from pathlib import PurePosixPath

from loguru import logger

from scriptory import clock
from scriptory.config import MAX_VERSIONS, VERSIONS_DIRNAME
from scriptory.core.documents.ids import validate_id
from scriptory.errors import NotFoundError, StorageError
from scriptory.models.document import Version
from scriptory.storage import FileStore


class VersionLog:
    """Append-only, retention-capped version files under ``.versions/<doc-id>/``.

    Each version lives in ``<timestamp>.json`` where timestamp is in
    milliseconds. Timestamps are strictly increasing within a document: a
    save landing in the same millisecond as the previous one is bumped by 1ms
    rather than overwriting it.

    The log never touches live document content.
    """

    def __init__(self, files: FileStore, *, max_versions: int = MAX_VERSIONS) -> None:
        self._files = files
        self.max_versions = max_versions

    def _dir(self, doc_id: str) -> PurePosixPath:
        return PurePosixPath(VERSIONS_DIRNAME) / validate_id(doc_id)

    def _timestamps(self, doc_id: str) -> list[int]:
        """Stored version timestamps, oldest first. Stray files are ignored."""
        stamps = []
        for fname in self._files.list_files(self._dir(doc_id), suffix=".json"):
            stem = fname.removesuffix(".json")
            if stem.isdigit():
                stamps.append(int(stem))
        return sorted(stamps)

    def record_version(
        self, doc_id: str, content: str, message: str = "Auto-save"
    ) -> Version | None:
        """Snapshot content, then drop all but the newest versions.

        Failures are logged and swallowed: history bookkeeping must never fail
        a save. Returns the stored version, or None if it could not be written.
        """
        try:
            existing = self._timestamps(doc_id)
            timestamp = clock.now_ms()
            if existing and timestamp <= existing[-1]:
                timestamp = existing[-1] + 1

            version = Version(
                timestamp=timestamp,
                content=content,
                message=message,
                created_at=clock.now_iso(),
            )
            self._files.write_json(self._dir(doc_id) / f"{timestamp}.json", version.to_dict())
            self._trim(doc_id, [*existing, timestamp])
        except (StorageError, OSError, ValueError):
            logger.opt(exception=True).warning("Error saving version for {}", doc_id)
            return None

        logger.debug("Recorded version {} for {}", version.timestamp, doc_id)
        return version

    def _trim(self, doc_id: str, stamps: list[int]) -> None:
        excess = len(stamps) - self.max_versions
        if excess <= 0:
            return
        for stamp in sorted(stamps)[:excess]:
            self._files.remove_file(self._dir(doc_id) / f"{stamp}.json")
        logger.debug("Trimmed {} old version(s) of {}", excess, doc_id)

    def list_versions(self, doc_id: str) -> list[Version]:
        """All retained versions, newest first. Empty if none were recorded."""
        versions = []
        for stamp in reversed(self._timestamps(doc_id)):
            data = self._files.try_read_json(self._dir(doc_id) / f"{stamp}.json")
            if not isinstance(data, dict):
                continue
            try:
                versions.append(Version.from_dict({**data, "timestamp": stamp}))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed version {} of {}", stamp, doc_id)
        return versions

    def get_version(self, doc_id: str, timestamp: int) -> Version:
        """Return the version saved at exactly this timestamp.

        Raises:
            NotFoundError: If there is no such version.
        """
        data = self._files.try_read_json(self._dir(doc_id) / f"{int(timestamp)}.json")
        if not isinstance(data, dict):
            msg = f"Version {timestamp} of document {doc_id!r} not found"
            raise NotFoundError(msg)
        return Version.from_dict({**data, "timestamp": int(timestamp)})

    def restore_version(self, doc_id: str, timestamp: int) -> str:
        """Return the content saved at timestamp. Writing it back is the caller's job."""
        return self.get_version(doc_id, timestamp).content

    def delete_versions(self, doc_id: str) -> None:
        """Drop the whole history of a document. Missing history is not an error."""
        self._files.remove_tree(self._dir(doc_id))
