"""Domain models for scriptory documents.

Field names are snake_case; ``to_dict``/``from_dict`` translate to the
camelCase keys used in the JSON files on disk.
"""

from dataclasses import dataclass, field
from typing import Any

from scriptory.config import DEFAULT_ICON


def normalize_tags(tags: Any) -> tuple[str, ...]:
    """Deduplicate tags, keeping first-seen order. Non-string entries are dropped."""
    if not isinstance(tags, list | tuple | set | frozenset):
        return ()
    seen: dict[str, None] = {}
    for tag in tags:
        if isinstance(tag, str) and tag.strip():
            seen.setdefault(tag.strip(), None)
    return tuple(seen)


@dataclass(frozen=True)
class Reply:
    """A reply attached to a comment."""

    id: str
    text: str
    author: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "author": self.author, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reply":
        return cls(
            id=str(data.get("id", "")),
            text=str(data.get("text", "")),
            author=str(data.get("author", "")),
            created_at=str(data.get("createdAt", "")),
        )


@dataclass(frozen=True)
class Comment:
    """A comment on a document, with its replies in posting order."""

    id: str
    text: str
    author: str
    created_at: str
    replies: tuple[Reply, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "author": self.author,
            "createdAt": self.created_at,
            "replies": [r.to_dict() for r in self.replies],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Comment":
        replies = data.get("replies") or []
        return cls(
            id=str(data.get("id", "")),
            text=str(data.get("text", "")),
            author=str(data.get("author", "")),
            created_at=str(data.get("createdAt", "")),
            replies=tuple(Reply.from_dict(r) for r in replies if isinstance(r, dict)),
        )


@dataclass(frozen=True)
class DocumentSummary:
    """Document metadata as stored in config.json, without the body."""

    id: str
    title: str
    icon: str = DEFAULT_ICON
    tags: tuple[str, ...] = ()
    favorite: bool = False
    created_at: str = ""
    updated_at: str = ""
    author: str = ""

    def config_dict(self) -> dict[str, Any]:
        """The config.json payload (the id lives in the directory name).

        ``author`` is the last known editor and is omitted when unknown.
        """
        config = {
            "title": self.title,
            "icon": self.icon,
            "tags": list(self.tags),
            "favorite": self.favorite,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.author:
            config["author"] = self.author
        return config

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.config_dict()}

    @classmethod
    def from_config(cls, doc_id: str, config: dict[str, Any]) -> "DocumentSummary":
        """Build a summary from config.json contents, filling in missing fields."""
        title = config.get("title")
        icon = config.get("icon")
        author = config.get("author")
        return cls(
            id=doc_id,
            title=title if isinstance(title, str) and title else doc_id,
            icon=icon if isinstance(icon, str) and icon else DEFAULT_ICON,
            tags=normalize_tags(config.get("tags")),
            favorite=bool(config.get("favorite", False)),
            created_at=str(config.get("createdAt") or ""),
            updated_at=str(config.get("updatedAt") or config.get("createdAt") or ""),
            author=author if isinstance(author, str) else "",
        )


@dataclass(frozen=True)
class Document(DocumentSummary):
    """A full document: metadata, body and comments."""

    content: str = ""
    comments: tuple[Comment, ...] = ()

    @property
    def summary(self) -> DocumentSummary:
        return DocumentSummary(
            id=self.id,
            title=self.title,
            icon=self.icon,
            tags=self.tags,
            favorite=self.favorite,
            created_at=self.created_at,
            updated_at=self.updated_at,
            author=self.author,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "content": self.content,
            "comments": [c.to_dict() for c in self.comments],
        }


@dataclass(frozen=True)
class TagCount:
    """A tag and how many documents carry it."""

    name: str
    count: int


@dataclass(frozen=True)
class Version:
    """A content snapshot taken when a document was saved."""

    timestamp: int
    content: str
    message: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "content": self.content,
            "message": self.message,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Version":
        return cls(
            timestamp=int(data["timestamp"]),
            content=str(data.get("content", "")),
            message=str(data.get("message", "")),
            created_at=str(data.get("createdAt", "")),
        )


@dataclass(frozen=True)
class SearchHit:
    """A ranked search result."""

    id: str
    score: int
    title: str
    tags: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "score": self.score,
            "title": self.title,
            "tags": list(self.tags),
            "metadata": dict(self.metadata),
        }
