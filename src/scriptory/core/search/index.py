"""Token-based inverted index over documents, with saved searches and history.

The index is a cache: it may lag behind the document store and can be rebuilt
from scratch at any time with ``reindex_all``.
"""

import re
import threading
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from scriptory import clock
from scriptory.config import (
    MAX_SEARCH_HISTORY_SHOWN,
    MAX_SEARCH_HISTORY_STORED,
    MIN_TOKEN_LENGTH,
    SEARCH_INDEX_FILENAME,
)
from scriptory.errors import InvalidInputError
from scriptory.models.document import Document, SearchHit, normalize_tags
from scriptory.storage import FileStore

TITLE_WEIGHT = 10
TAG_WEIGHT = 5
WORD_WEIGHT = 1

_INLINE_FILTER_RE = re.compile(r"\b(tag|author):(\S+)", flags=re.IGNORECASE)


def tokenize(text: str) -> list[str]:
    """Lowercase, replace non-word characters with spaces, split, drop short tokens.

    Duplicates are kept, in order of appearance.
    """
    cleaned = re.sub(r"[^\w\s]", " ", text.lower(), flags=re.UNICODE)
    return [t for t in cleaned.split() if len(t) >= MIN_TOKEN_LENGTH]


def unique_tokens(text: str) -> list[str]:
    return list(dict.fromkeys(tokenize(text)))


def parse_query(query: str) -> tuple[str, dict[str, str]]:
    """Split inline ``tag:x`` / ``author:x`` filters from the free text.

    Returns:
        Tuple of (free text, filters). A repeated filter keeps its last value.
    """
    filters: dict[str, str] = {}
    for match in _INLINE_FILTER_RE.finditer(query):
        filters[match.group(1).lower()] = match.group(2)
    free_text = _INLINE_FILTER_RE.sub(" ", query)
    return " ".join(free_text.split()), filters


def _parse_bound(value: str | datetime | None, name: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    try:
        return clock.parse_iso(value)
    except ValueError as e:
        msg = f"Invalid {name} date: {value!r}"
        raise InvalidInputError(msg) from e


class SearchIndex:
    """In-memory index backed by a single JSON file.

    State is loaded once on construction. Mutating calls update memory and
    then ``flush()`` to disk; ``reload()`` discards memory and re-reads the
    file.
    """

    def __init__(self, files: FileStore, *, filename: str = SEARCH_INDEX_FILENAME) -> None:
        self._files = files
        self._filename = filename
        self._lock = threading.RLock()
        self._index: dict[str, dict[str, Any]] = {}
        self._history: list[dict[str, Any]] = []
        self._saved: dict[str, dict[str, Any]] = {}
        self.reload()

    def reload(self) -> None:
        """Replace in-memory state with the file contents. Missing or corrupt file means empty."""
        data = self._files.try_read_json(self._filename)
        if not isinstance(data, dict):
            data = {}
        with self._lock:
            index = data.get("index")
            history = data.get("history")
            saved = data.get("saved")
            self._index = index if isinstance(index, dict) else {}
            self._history = history if isinstance(history, list) else []
            self._saved = saved if isinstance(saved, dict) else {}

    def flush(self) -> None:
        with self._lock:
            payload = {"index": self._index, "history": self._history, "saved": self._saved}
            self._files.write_json(self._filename, payload)

    # -------------------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------------------

    def _build_entry(
        self,
        title: str,
        content: str,
        tags: Iterable[str],
        metadata: dict[str, Any] | None,
    ) -> dict[str, Any]:
        tag_list = list(normalize_tags(list(tags)))
        tokens = tokenize(" ".join([title, content, *tag_list]))
        return {
            "title": title,
            "words": list(dict.fromkeys(tokens)),
            "tags": tag_list,
            "metadata": {
                **(metadata or {}),
                "indexed": clock.now_iso(),
                "wordCount": len(tokens),
            },
        }

    def index_document(
        self,
        doc_id: str,
        title: str,
        content: str,
        tags: Iterable[str] = (),
        metadata: dict[str, Any] | None = None,
        *,
        flush: bool = True,
    ) -> dict[str, Any]:
        """Index or re-index one document, replacing any previous entry.

        Returns:
            The stored entry.
        """
        entry = self._build_entry(title, content, tags, metadata)
        with self._lock:
            self._index[doc_id] = entry
            if flush:
                self.flush()
        logger.debug("Indexed {} ({} words)", doc_id, entry["metadata"]["wordCount"])
        return entry

    def index_from_document(
        self, document: Document, metadata: dict[str, Any] | None = None, *, flush: bool = True
    ) -> dict[str, Any]:
        """Index a stored document. Everything but ``metadata`` comes from the document."""
        base: dict[str, Any] = {"createdAt": document.created_at, "updatedAt": document.updated_at}
        if document.author:
            base["author"] = document.author
        return self.index_document(
            document.id,
            document.title,
            document.content,
            document.tags,
            {**base, **(metadata or {})},
            flush=flush,
        )

    def remove_document(self, doc_id: str) -> bool:
        with self._lock:
            removed = self._index.pop(doc_id, None) is not None
            if removed:
                self.flush()
        return removed

    def reindex_all(self, documents: Iterable[Document]) -> int:
        """Rebuild the index from scratch. History and saved searches are kept.

        Returns:
            Number of documents indexed.
        """
        with self._lock:
            self._index = {}
            count = 0
            for document in documents:
                self.index_from_document(document, flush=False)
                count += 1
            self.flush()
        logger.info("Reindexed {} documents", count)
        return count

    def get_entry(self, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._index.get(doc_id)
            return dict(entry) if entry is not None else None

    def indexed_ids(self) -> list[str]:
        with self._lock:
            return list(self._index)

    # -------------------------------------------------------------------------
    # Querying
    # -------------------------------------------------------------------------

    def _score(self, tokens: list[str], entry: dict[str, Any]) -> int:
        title = str(entry.get("title", "")).lower()
        words = set(entry.get("words", []))
        tags = [str(t).lower() for t in entry.get("tags", [])]
        score = 0
        for token in tokens:
            if token in title:
                score += TITLE_WEIGHT
            if token in words:
                score += WORD_WEIGHT
            if any(token in t for t in tags):
                score += TAG_WEIGHT
        return score

    def search(
        self,
        query: str,
        *,
        date_from: str | datetime | None = None,
        date_to: str | datetime | None = None,
        author: str | None = None,
        tag: str | None = None,
    ) -> list[SearchHit]:
        """Rank indexed documents against a query.

        Inline ``tag:`` and ``author:`` filters in the query are applied in
        addition to the keyword filters. Entries scoring zero are dropped;
        equal scores keep index order.

        Raises:
            InvalidInputError: If a date bound is not ISO-8601.
        """
        query = query or ""
        free_text, inline = parse_query(query)
        tag = inline.get("tag", tag)
        author = inline.get("author", author)
        lower = _parse_bound(date_from, "from")
        upper = _parse_bound(date_to, "to")
        tokens = unique_tokens(free_text)

        hits: list[SearchHit] = []
        with self._lock:
            for doc_id, entry in self._index.items():
                metadata = entry.get("metadata", {})
                if tag and tag.lower() not in (str(t).lower() for t in entry.get("tags", [])):
                    continue
                if author and metadata.get("author") != author:
                    continue
                if lower or upper:
                    try:
                        indexed = clock.parse_iso(str(metadata.get("indexed", "")))
                    except ValueError:
                        continue
                    if (lower and indexed < lower) or (upper and indexed > upper):
                        continue
                score = self._score(tokens, entry)
                if score <= 0:
                    continue
                hits.append(
                    SearchHit(
                        id=doc_id,
                        score=score,
                        title=str(entry.get("title", "")),
                        tags=tuple(entry.get("tags", [])),
                        metadata=dict(metadata),
                    )
                )
            hits.sort(key=lambda h: h.score, reverse=True)
            self._record_history(
                query,
                tag=tag,
                author=author,
                date_from=date_from,
                date_to=date_to,
                result_count=len(hits),
            )
        return hits

    def _record_history(
        self,
        query: str,
        *,
        tag: str | None,
        author: str | None,
        date_from: str | datetime | None,
        date_to: str | datetime | None,
        result_count: int,
    ) -> None:
        filters = {
            k: (v.isoformat() if isinstance(v, datetime) else v)
            for k, v in (("tag", tag), ("author", author), ("from", date_from), ("to", date_to))
            if v
        }
        self._history.append(
            {
                "query": query,
                "filters": filters,
                "timestamp": clock.now_iso(),
                "resultCount": result_count,
            }
        )
        self._history = self._history[-MAX_SEARCH_HISTORY_STORED:]
        try:
            self.flush()
        except OSError:
            logger.opt(exception=True).warning("Could not persist search history")

    def get_search_history(self) -> list[dict[str, Any]]:
        """Most recent searches first."""
        with self._lock:
            return [dict(h) for h in reversed(self._history[-MAX_SEARCH_HISTORY_SHOWN:])]

    # -------------------------------------------------------------------------
    # Saved searches
    # -------------------------------------------------------------------------

    def save_search(
        self, name: str, query: str, filters: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Create or replace a named search.

        Raises:
            InvalidInputError: If name is empty.
        """
        if not name or not name.strip():
            msg = "Saved search name must not be empty"
            raise InvalidInputError(msg)
        saved = {"query": query, "filters": dict(filters or {}), "savedAt": clock.now_iso()}
        with self._lock:
            self._saved[name] = saved
            self.flush()
        return saved

    def get_saved_searches(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {name: dict(s) for name, s in self._saved.items()}
