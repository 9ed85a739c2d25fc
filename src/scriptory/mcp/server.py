"""MCP server exposing scriptory documents, versions, search and analytics."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from scriptory.config import resolve_docs_directory
from scriptory.errors import InvalidInputError, NotFoundError
from scriptory.workspace import Workspace

# Bodies longer than this are cut in concise responses.
_PREVIEW_CHARS = 500


# --- Core functions (testable without MCP context) ---


def scriptory_list_documents(
    ws: Workspace,
    *,
    tag: str | None = None,
    favorites: bool = False,
    search: str | None = None,
) -> dict[str, Any]:
    """List documents, most recently updated first.

    Args:
        tag: Only documents carrying this tag.
        favorites: Only favorite documents.
        search: Case-insensitive substring of title or tags.
    """
    summaries = ws.documents.list_documents(tag=tag, favorites=favorites, search=search)
    return {"documents": [s.to_dict() for s in summaries], "count": len(summaries)}


def scriptory_get_document(
    ws: Workspace,
    *,
    doc_id: str,
    response_format: str = "detailed",
    track_view: bool = True,
) -> dict[str, Any]:
    """Read one document with its body and comments.

    Args:
        doc_id: Document id.
        response_format: "concise" (truncated body, no comments) or "detailed".
        track_view: Record the read as a view in analytics and recent views.
    """
    try:
        document = ws.documents.get_document(doc_id)
    except NotFoundError:
        return {"error": f"Document '{doc_id}' not found."}

    if track_view:
        ws.analytics.track_view(doc_id, {"source": "mcp"})
        ws.organization.track_recent_view(doc_id)

    data = document.to_dict()
    if response_format == "concise":
        data.pop("comments")
        if len(document.content) > _PREVIEW_CHARS:
            data["content"] = document.content[:_PREVIEW_CHARS]
            data["truncated"] = True
    return data


def scriptory_create_document(
    ws: Workspace,
    *,
    title: str,
    content: str = "",
    icon: str | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Create a document. The id is derived from the title.

    Args:
        title: Document title (required, non-empty).
        content: Markdown body.
        icon: Emoji icon.
        tags: Tags to attach.
    """
    try:
        document = ws.documents.create_document(title, icon=icon, content=content, tags=tags or ())
    except InvalidInputError as e:
        return {"error": str(e)}
    return {"id": document.id, "document": document.summary.to_dict()}


def scriptory_update_document(
    ws: Workspace,
    *,
    doc_id: str,
    title: str | None = None,
    content: str | None = None,
    icon: str | None = None,
    tags: list[str] | None = None,
    favorite: bool | None = None,
) -> dict[str, Any]:
    """Update the given fields of a document. Content changes create a version.

    Args:
        doc_id: Document id.
        title: New title.
        content: New markdown body.
        icon: New icon.
        tags: Replacement tag list.
        favorite: New favorite flag.
    """
    try:
        document = ws.documents.update_document(
            doc_id, title=title, icon=icon, tags=tags, favorite=favorite, content=content
        )
    except (NotFoundError, InvalidInputError) as e:
        return {"error": str(e)}
    return {"id": document.id, "document": document.summary.to_dict()}


def scriptory_delete_document(ws: Workspace, *, doc_id: str) -> dict[str, Any]:
    """Delete a document and its version history."""
    try:
        deleted = ws.documents.delete_document(doc_id)
    except InvalidInputError as e:
        return {"error": str(e)}
    return {"id": doc_id, "deleted": deleted}


def scriptory_list_versions(
    ws: Workspace, *, doc_id: str, include_content: bool = False
) -> dict[str, Any]:
    """List saved versions of a document, newest first.

    Args:
        doc_id: Document id.
        include_content: Include the full body of every version.
    """
    if not ws.documents.exists(doc_id):
        return {"error": f"Document '{doc_id}' not found."}
    versions = []
    for v in ws.versions.list_versions(doc_id):
        entry = v.to_dict()
        if not include_content:
            entry["size"] = len(entry.pop("content"))
        versions.append(entry)
    return {"id": doc_id, "versions": versions, "count": len(versions)}


def scriptory_restore_version(ws: Workspace, *, doc_id: str, timestamp: int) -> dict[str, Any]:
    """Make a saved version the live content of a document."""
    try:
        document = ws.documents.restore_version(doc_id, timestamp)
    except NotFoundError as e:
        return {"error": str(e)}
    return {"id": doc_id, "restored": timestamp, "document": document.summary.to_dict()}


def scriptory_search(
    ws: Workspace,
    *,
    query: str,
    tag: str | None = None,
    author: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int = 20,
) -> dict[str, Any]:
    """Ranked keyword search over titles, tags and bodies.

    Query syntax: words of 3+ characters are matched; title matches weigh
    most, then tags, then body words. Inline ``tag:name`` and
    ``author:name`` filters are supported.

    Args:
        query: Search text.
        tag: Only documents with this tag.
        author: Only documents indexed with this author.
        date_from: ISO-8601 lower bound on the indexing time.
        date_to: ISO-8601 upper bound on the indexing time.
        limit: Max results (1-50, default 20).
    """
    if not query.strip():
        return {"error": "No search query provided.", "results": [], "count": 0, "total": 0}
    limit = max(1, min(limit, 50))
    try:
        hits = ws.search_documents(
            query, tag=tag, author=author, date_from=date_from, date_to=date_to
        )
    except InvalidInputError as e:
        return {"error": str(e), "results": [], "count": 0, "total": 0}
    results = [h.to_dict() for h in hits[:limit]]
    return {"results": results, "count": len(results), "total": len(hits)}


def scriptory_list_tags(ws: Workspace) -> dict[str, Any]:
    """Every tag in use with its document count."""
    tags = ws.documents.list_tags()
    return {"tags": [{"name": t.name, "count": t.count} for t in tags], "count": len(tags)}


def scriptory_get_stats(ws: Workspace, *, days: int = 30) -> dict[str, Any]:
    """Workspace totals, most viewed documents and recent activity.

    Args:
        days: Number of days in the activity heatmap.
    """
    return {
        "documents": len(ws.document_ids()),
        **ws.analytics.get_stats(),
        "mostViewed": ws.analytics.get_most_viewed(),
        "contributors": ws.analytics.get_contributors(),
        "activity": ws.analytics.get_activity_heatmap(max(1, days)),
    }


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    workspace: Workspace
    docs_dir: Path


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the documentation directory on startup."""
    docs_dir = resolve_docs_directory()
    workspace = Workspace(docs_dir)
    logger.info("Serving documents from {}", docs_dir)
    yield ServerContext(workspace=workspace, docs_dir=docs_dir)


mcp_server = FastMCP(
    "scriptory",
    instructions="""\
scriptory is a local documentation store. Each document has an id (derived
from its title), markdown content, tags and a version history.

## Workflow
1. Use scriptory_search_tool or scriptory_list_documents_tool to find documents.
2. Read one with scriptory_get_document_tool.
3. Edit with scriptory_update_document_tool; every content change is versioned
   and can be undone with scriptory_restore_version_tool.
""",
    lifespan=server_lifespan,
)


def _ws(mcp_ctx: Context) -> Workspace:
    return mcp_ctx.request_context.lifespan_context.workspace  # type: ignore[no-any-return]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def scriptory_list_documents_tool(
    ctx: Context,
    tag: str | None = None,
    favorites: bool = False,
    search: str | None = None,
) -> dict[str, Any]:
    """List documents, most recently updated first.

    Args:
        tag: Only documents carrying this tag.
        favorites: Only favorite documents.
        search: Case-insensitive substring of title or tags.
    """
    return scriptory_list_documents(_ws(ctx), tag=tag, favorites=favorites, search=search)


@mcp_server.tool()
async def scriptory_get_document_tool(
    ctx: Context, doc_id: str, response_format: str = "detailed"
) -> dict[str, Any]:
    """Read one document with its body and comments.

    Args:
        doc_id: Document id.
        response_format: "concise" or "detailed".
    """
    return scriptory_get_document(_ws(ctx), doc_id=doc_id, response_format=response_format)


@mcp_server.tool()
async def scriptory_create_document_tool(
    ctx: Context,
    title: str,
    content: str = "",
    icon: str | None = None,
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Create a document. The id is derived from the title.

    Args:
        title: Document title.
        content: Markdown body.
        icon: Emoji icon.
        tags: Tags to attach.
    """
    return scriptory_create_document(_ws(ctx), title=title, content=content, icon=icon, tags=tags)


@mcp_server.tool()
async def scriptory_update_document_tool(
    ctx: Context,
    doc_id: str,
    title: str | None = None,
    content: str | None = None,
    icon: str | None = None,
    tags: list[str] | None = None,
    favorite: bool | None = None,
) -> dict[str, Any]:
    """Update the given fields of a document. Content changes create a version.

    Args:
        doc_id: Document id.
        title: New title.
        content: New markdown body (replaces the whole body).
        icon: New icon.
        tags: Replacement tag list.
        favorite: New favorite flag.
    """
    return scriptory_update_document(
        _ws(ctx),
        doc_id=doc_id,
        title=title,
        content=content,
        icon=icon,
        tags=tags,
        favorite=favorite,
    )


@mcp_server.tool()
async def scriptory_delete_document_tool(ctx: Context, doc_id: str) -> dict[str, Any]:
    """Delete a document and its version history. This cannot be undone."""
    return scriptory_delete_document(_ws(ctx), doc_id=doc_id)


@mcp_server.tool()
async def scriptory_list_versions_tool(
    ctx: Context, doc_id: str, include_content: bool = False
) -> dict[str, Any]:
    """List saved versions of a document, newest first.

    Args:
        doc_id: Document id.
        include_content: Include the full body of every version.
    """
    return scriptory_list_versions(_ws(ctx), doc_id=doc_id, include_content=include_content)


@mcp_server.tool()
async def scriptory_restore_version_tool(
    ctx: Context, doc_id: str, timestamp: int
) -> dict[str, Any]:
    """Make a saved version the live content of a document.

    Args:
        doc_id: Document id.
        timestamp: Version timestamp from scriptory_list_versions_tool.
    """
    return scriptory_restore_version(_ws(ctx), doc_id=doc_id, timestamp=timestamp)


@mcp_server.tool()
async def scriptory_search_tool(
    ctx: Context,
    query: str,
    tag: str | None = None,
    author: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int = 20,
) -> dict[str, Any]:
    """Ranked keyword search over titles, tags and bodies.

    Words shorter than 3 characters are ignored. Inline ``tag:name`` and
    ``author:name`` filters are supported.

    Args:
        query: Search text.
        tag: Only documents with this tag.
        author: Only documents indexed with this author.
        date_from: ISO-8601 lower bound on the indexing time.
        date_to: ISO-8601 upper bound on the indexing time.
        limit: Max results (1-50, default 20).
    """
    return scriptory_search(
        _ws(ctx),
        query=query,
        tag=tag,
        author=author,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )


@mcp_server.tool()
async def scriptory_list_tags_tool(ctx: Context) -> dict[str, Any]:
    """Every tag in use with its document count."""
    return scriptory_list_tags(_ws(ctx))


@mcp_server.tool()
async def scriptory_get_stats_tool(ctx: Context, days: int = 30) -> dict[str, Any]:
    """Workspace totals, most viewed documents and recent activity.

    Args:
        days: Number of days in the activity heatmap.
    """
    return scriptory_get_stats(_ws(ctx), days=days)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from scriptory.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
