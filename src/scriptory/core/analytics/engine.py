"""View and edit counters, derived only from explicit tracking calls."""

import threading
from datetime import UTC, datetime, timedelta
from pathlib import PurePosixPath
from typing import Any

from loguru import logger

from scriptory import clock
from scriptory.config import ANALYTICS_DIRNAME, MAX_EDIT_LOG, MAX_VIEW_HISTORY
from scriptory.storage import FileStore

VIEWS_FILE = PurePosixPath(ANALYTICS_DIRNAME) / "views.json"
EDITS_FILE = PurePosixPath(ANALYTICS_DIRNAME) / "edits.json"
CONTRIBUTORS_FILE = PurePosixPath(ANALYTICS_DIRNAME) / "contributors.json"

ANONYMOUS = "Anonymous"


def _utc_day(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).date().isoformat()


def _contributors_from_edits(edits: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    contributors: dict[str, dict[str, Any]] = {}
    for edit in edits:
        _apply_edit(contributors, edit)
    return contributors


def _apply_edit(contributors: dict[str, dict[str, Any]], edit: dict[str, Any]) -> None:
    author = edit["author"]
    stat = contributors.get(author)
    if stat is None:
        stat = contributors[author] = {
            "name": author,
            "edits": 0,
            "documents": [],
            "firstEdit": edit["timestamp"],
            "lastEdit": edit["timestamp"],
        }
    stat["edits"] += 1
    if edit["docId"] not in stat["documents"]:
        stat["documents"].append(edit["docId"])
    stat["lastEdit"] = edit["timestamp"]


class AnalyticsEngine:
    """Usage analytics stored in three JSON files under ``.analytics/``.

    - views.json: per document ``{count, history, firstView, lastView}``
    - edits.json: global edit log, oldest first, capped
    - contributors.json: per author aggregate over the retained edit log,
      maintained on every edit and rebuildable from the log

    Timestamps are epoch milliseconds. Writes are best effort: a failed flush
    is logged, the in-memory counters stay updated.
    """

    def __init__(
        self,
        files: FileStore,
        *,
        max_view_history: int = MAX_VIEW_HISTORY,
        max_edits: int = MAX_EDIT_LOG,
    ) -> None:
        self._files = files
        self.max_view_history = max_view_history
        self.max_edits = max_edits
        self._lock = threading.RLock()
        self._views: dict[str, dict[str, Any]] = {}
        self._edits: list[dict[str, Any]] = []
        self._contributors: dict[str, dict[str, Any]] = {}
        self.reload()

    def reload(self) -> None:
        views = self._files.try_read_json(VIEWS_FILE)
        edits = self._files.try_read_json(EDITS_FILE)
        contributors = self._files.try_read_json(CONTRIBUTORS_FILE)
        with self._lock:
            self._views = views if isinstance(views, dict) else {}
            self._edits = [e for e in edits if _is_edit(e)] if isinstance(edits, list) else []
            if isinstance(contributors, dict):
                self._contributors = contributors
            else:
                self._contributors = _contributors_from_edits(self._edits)

    def flush(self) -> None:
        with self._lock:
            self._flush_views()
            self._flush_edits()

    def _flush_views(self) -> None:
        try:
            self._files.write_json(VIEWS_FILE, self._views)
        except OSError:
            logger.opt(exception=True).warning("Could not persist view counters")

    def _flush_edits(self) -> None:
        try:
            self._files.write_json(EDITS_FILE, self._edits)
            self._files.write_json(CONTRIBUTORS_FILE, self._contributors)
        except OSError:
            logger.opt(exception=True).warning("Could not persist edit log")

    # -------------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------------

    def track_view(self, doc_id: str, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
        """Count one view of a document. Returns the updated counter."""
        now = clock.now_ms()
        with self._lock:
            stat = self._views.get(doc_id)
            if stat is None:
                stat = self._views[doc_id] = {
                    "count": 0,
                    "history": [],
                    "firstView": now,
                    "lastView": now,
                }
            stat["count"] = int(stat.get("count", 0)) + 1
            stat["lastView"] = now
            history = [*stat.get("history", []), {**(metadata or {}), "timestamp": now}]
            stat["history"] = history[-self.max_view_history :]
            self._flush_views()
            return dict(stat)

    def track_edit(
        self, doc_id: str, author: str | None = None, change_size: int = 0
    ) -> dict[str, Any]:
        """Append to the edit log and update the author's aggregate.

        When the log is trimmed the aggregates are recomputed from the
        retained entries.
        """
        edit = {
            "docId": doc_id,
            "author": author or ANONYMOUS,
            "timestamp": clock.now_ms(),
            "changeSize": int(change_size or 0),
        }
        with self._lock:
            self._edits.append(edit)
            if len(self._edits) > self.max_edits:
                self._edits = self._edits[-self.max_edits :]
                self._contributors = _contributors_from_edits(self._edits)
            else:
                _apply_edit(self._contributors, edit)
            self._flush_edits()
        return edit

    def rebuild_contributors(self) -> dict[str, dict[str, Any]]:
        """Recompute contributor aggregates from the retained edit log."""
        with self._lock:
            self._contributors = _contributors_from_edits(self._edits)
            self._flush_edits()
            return self.get_contributor_map()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_views(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {k: dict(v) for k, v in self._views.items()}

    def get_edits(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self._edits]

    def get_contributor_map(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                k: {**v, "documents": list(v.get("documents", []))}
                for k, v in self._contributors.items()
            }

    def get_contributors(self) -> list[dict[str, Any]]:
        """Contributors, most edits first."""
        return sorted(self.get_contributor_map().values(), key=lambda c: c["edits"], reverse=True)

    def get_most_viewed(self, limit: int = 10) -> list[dict[str, Any]]:
        """Documents by descending view count. Ties keep first-viewed order."""
        with self._lock:
            ranked = sorted(self._views.items(), key=lambda kv: kv[1].get("count", 0), reverse=True)
            return [
                {"id": doc_id, **{k: v for k, v in data.items() if k != "history"}}
                for doc_id, data in ranked[: max(0, limit)]
            ]

    def get_activity_heatmap(self, days: int = 90) -> dict[str, int]:
        """Edit counts for the trailing ``days`` UTC calendar days, oldest first.

        Today is the last bucket. Days without edits are present with zero.
        """
        today = datetime.fromtimestamp(clock.now_ms() / 1000, tz=UTC).date()
        heatmap = {
            (today - timedelta(days=offset)).isoformat(): 0
            for offset in range(max(0, days) - 1, -1, -1)
        }
        with self._lock:
            for edit in self._edits:
                day = _utc_day(edit["timestamp"])
                if day in heatmap:
                    heatmap[day] += 1
        return heatmap

    def get_time_to_write(self, doc_id: str) -> dict[str, Any] | None:
        """Span between the first and last edit of a document.

        Returns:
            None with fewer than two edits, otherwise
            ``{totalTime, edits, averageInterval}`` in milliseconds.
        """
        with self._lock:
            stamps = [e["timestamp"] for e in self._edits if e["docId"] == doc_id]
        if len(stamps) < 2:
            return None
        total = max(stamps) - min(stamps)
        return {
            "totalTime": total,
            "edits": len(stamps),
            "averageInterval": total / (len(stamps) - 1),
        }

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "totalViews": sum(v.get("count", 0) for v in self._views.values()),
                "totalEdits": len(self._edits),
                "totalContributors": len(self._contributors),
                "uniqueDocuments": len({e["docId"] for e in self._edits}),
            }


def _is_edit(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("docId"), str)
        and isinstance(value.get("author"), str)
        and isinstance(value.get("timestamp"), int)
    )
