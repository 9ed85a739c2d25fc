"""Folders, pins, stars and recently viewed documents."""

import threading
import uuid
from collections.abc import Container
from typing import Any

from scriptory import clock
from scriptory.config import COLLECTIONS_FILENAME, MAX_RECENT_VIEWS
from scriptory.errors import InvalidInputError, NotFoundError
from scriptory.storage import FileStore


def _empty() -> dict[str, Any]:
    return {"folders": [], "pinned": [], "starred": [], "recentlyViewed": []}


class OrganizationStore:
    """Secondary indices over document ids, kept in ``.collections.json``.

    Document ids are weak references: deleting a document does not clean
    these lists. Pass ``existing_ids`` to the read methods to filter out
    dangling ids.
    """

    def __init__(
        self,
        files: FileStore,
        *,
        filename: str = COLLECTIONS_FILENAME,
        max_recent: int = MAX_RECENT_VIEWS,
    ) -> None:
        self._files = files
        self._filename = filename
        self.max_recent = max_recent
        self._lock = threading.RLock()
        self._data = _empty()
        self.reload()

    def reload(self) -> None:
        data = self._files.try_read_json(self._filename)
        state = _empty()
        if isinstance(data, dict):
            for key, default in state.items():
                value = data.get(key)
                if isinstance(value, type(default)):
                    state[key] = value
        with self._lock:
            self._data = state

    def flush(self) -> None:
        with self._lock:
            self._files.write_json(self._filename, self._data)

    # -------------------------------------------------------------------------
    # Folders
    # -------------------------------------------------------------------------

    def _find_folder(self, folder_id: str) -> dict[str, Any]:
        for folder in self._data["folders"]:
            if folder.get("id") == folder_id:
                return folder
        msg = f"Folder {folder_id!r} not found"
        raise NotFoundError(msg)

    def create_folder(self, name: str, parent_id: str | None = None) -> dict[str, Any]:
        """Create an empty folder.

        Raises:
            InvalidInputError: If name is empty.
            NotFoundError: If parent_id names no folder.
        """
        if not name or not name.strip():
            msg = "Folder name must not be empty"
            raise InvalidInputError(msg)
        with self._lock:
            if parent_id is not None:
                self._find_folder(parent_id)
            folder = {
                "id": f"folder-{uuid.uuid4().hex[:12]}",
                "name": name.strip(),
                "parentId": parent_id,
                "documents": [],
                "createdAt": clock.now_iso(),
            }
            self._data["folders"].append(folder)
            self.flush()
            return dict(folder)

    def add_to_folder(self, folder_id: str, doc_id: str) -> dict[str, Any]:
        """Add a document to a folder. Adding twice is a no-op.

        Raises:
            NotFoundError: If the folder does not exist.
        """
        with self._lock:
            folder = self._find_folder(folder_id)
            if doc_id not in folder["documents"]:
                folder["documents"].append(doc_id)
                self.flush()
            return {**folder, "documents": list(folder["documents"])}

    # -------------------------------------------------------------------------
    # Pins, stars, recent
    # -------------------------------------------------------------------------

    def _add_to_set(self, key: str, doc_id: str) -> None:
        with self._lock:
            if doc_id not in self._data[key]:
                self._data[key].append(doc_id)
                self.flush()

    def pin_document(self, doc_id: str) -> None:
        self._add_to_set("pinned", doc_id)

    def star_document(self, doc_id: str) -> None:
        self._add_to_set("starred", doc_id)

    def track_recent_view(self, doc_id: str) -> list[str]:
        """Move a document to the front of the recently viewed list."""
        with self._lock:
            recent = [doc_id, *(d for d in self._data["recentlyViewed"] if d != doc_id)]
            self._data["recentlyViewed"] = recent[: self.max_recent]
            self.flush()
            return list(self._data["recentlyViewed"])

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_collections(self, existing_ids: Container[str] | None = None) -> dict[str, Any]:
        """Snapshot of all collections, optionally without dangling ids."""

        def keep(ids: list[str]) -> list[str]:
            if existing_ids is None:
                return list(ids)
            return [d for d in ids if d in existing_ids]

        with self._lock:
            return {
                "folders": [
                    {**f, "documents": keep(f.get("documents", []))} for f in self._data["folders"]
                ],
                "pinned": keep(self._data["pinned"]),
                "starred": keep(self._data["starred"]),
                "recentlyViewed": keep(self._data["recentlyViewed"]),
            }
