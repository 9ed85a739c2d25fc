"""Fake implementations of the collaborators scriptory talks to."""

from typing import Any

import requests

from scriptory.models.document import Document

# 2024-03-10T12:00:00Z
START_MS = 1_710_072_000_000


class FakeClock:
    """Callable stand-in for scriptory.clock.now_ms."""

    def __init__(self, start_ms: int) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeResponse:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            msg = f"{self.status_code} error"
            raise requests.HTTPError(msg)


class FakeHttp:
    """Records webhook posts. URLs in ``failing`` raise a connection error."""

    def __init__(self) -> None:
        self.posts: list[tuple[str, Any]] = []
        self.failing: set[str] = set()
        self.status_code = 200

    def post(self, url: str, *, json: Any, timeout: float) -> FakeResponse:
        if url in self.failing:
            msg = f"cannot connect to {url}"
            raise requests.ConnectionError(msg)
        self.posts.append((url, json))
        return FakeResponse(self.status_code)

    def events(self) -> list[str]:
        return [payload["event"] for _, payload in self.posts]


class FakeGit:
    """In-memory GitProtocol with canned diffs and file contents."""

    def __init__(
        self,
        *,
        branch: str = "main",
        diffs: dict[str, str] | None = None,
        contents: dict[str, str] | None = None,
        last_message: str | None = "Initial commit",
    ) -> None:
        self._branch = branch
        self.diffs = diffs or {}
        self.contents = contents or {}
        self.last_message = last_message

    def branch(self) -> str:
        return self._branch

    def author(self) -> str:
        return "Ada Lovelace"

    def email(self) -> str:
        return "ada@example.com"

    def last_commit_message(self) -> str | None:
        return self.last_message

    def diff(self, path: str) -> str:
        if path not in self.diffs:
            raise OSError(path)
        return self.diffs[path]

    def read_file(self, path: str) -> str | None:
        return self.contents.get(path)


class RecordingListener:
    """DocumentListener that records every notification."""

    def __init__(self) -> None:
        self.saved: list[tuple[str, bool, int | None]] = []
        self.deleted: list[str] = []

    def document_saved(
        self, document: Document, *, created: bool, change_size: int | None
    ) -> None:
        self.saved.append((document.id, created, change_size))

    def document_deleted(self, doc_id: str) -> None:
        self.deleted.append(doc_id)


class BrokenListener:
    def document_saved(
        self, document: Document, *, created: bool, change_size: int | None
    ) -> None:
        msg = "listener exploded"
        raise RuntimeError(msg)

    def document_deleted(self, doc_id: str) -> None:
        msg = "listener exploded"
        raise RuntimeError(msg)
