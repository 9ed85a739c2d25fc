"""CLI for scriptory (create, browse, search and version documents)."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from scriptory.clock import ms_to_iso
from scriptory.config import (
    VALID_CONFIG_KEYS,
    load_user_config,
    resolve_docs_directory,
    set_user_config,
)
from scriptory.core.gitdocs.generator import GitCli
from scriptory.errors import ScriptoryError
from scriptory.logging_config import configure_logging
from scriptory.workspace import Workspace

app = typer.Typer(help="scriptory: local, versioned documentation.")
config_app = typer.Typer(help="Read and change user settings.")
app.add_typer(config_app, name="config")

DocsDirOption = Annotated[
    Path | None,
    typer.Option("--docs-dir", "-d", help="Documentation directory (default: ./scriptory)"),
]
JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
) -> None:
    configure_logging(verbose=verbose, quiet=quiet)


def _workspace(docs_dir: Path | None) -> Workspace:
    return Workspace(docs_dir or resolve_docs_directory())


def _fail(error: ScriptoryError) -> typer.Exit:
    logger.error("{}", error)
    return typer.Exit(1)


def _read_body(content: str | None, file: Path | None) -> str | None:
    if file is None:
        return content
    try:
        return file.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Cannot read {}: {}", file, e)
        raise typer.Exit(1) from e


@app.command()
def init(docs_dir: DocsDirOption = None) -> None:
    """Create the documentation directory with a sample document."""
    ws = _workspace(docs_dir)
    try:
        sample = ws.init_project()
    except ScriptoryError as e:
        raise _fail(e) from e
    typer.echo(f"Initialized documentation in {ws.docs_dir}")
    if sample:
        typer.echo(f"Created sample document '{sample.title}' [id={sample.id}]")


@app.command(name="list")
def list_cmd(
    tag: Annotated[str | None, typer.Option("--tag", "-t", help="Only this tag")] = None,
    favorites: bool = typer.Option(False, "--favorites", "-f", help="Only favorites"),
    search: Annotated[
        str | None, typer.Option("--search", "-s", help="Substring of title or tags")
    ] = None,
    docs_dir: DocsDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """List documents, most recently updated first."""
    summaries = _workspace(docs_dir).documents.list_documents(
        tag=tag, favorites=favorites, search=search
    )
    if output_json:
        typer.echo(json.dumps([s.to_dict() for s in summaries], indent=2, ensure_ascii=False))
        return

    typer.echo(f"{len(summaries)} documents:\n")
    for s in summaries:
        star = " *" if s.favorite else ""
        tags = f"  #{' #'.join(s.tags)}" if s.tags else ""
        typer.echo(f"  {s.icon} {s.title}{star}{tags}  [id={s.id}]")


@app.command()
def show(
    doc_id: str = typer.Argument(..., help="Document id"),
    docs_dir: DocsDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Print a document and record the view."""
    ws = _workspace(docs_dir)
    try:
        document = ws.documents.get_document(doc_id)
    except ScriptoryError as e:
        raise _fail(e) from e
    ws.analytics.track_view(doc_id, {"source": "cli"})
    ws.organization.track_recent_view(doc_id)

    if output_json:
        typer.echo(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))
        return

    typer.echo(f"{document.icon} {document.title}")
    if document.tags:
        typer.echo(f"tags: {', '.join(document.tags)}")
    typer.echo(f"updated: {document.updated_at}\n")
    typer.echo(document.content)
    for c in document.comments:
        typer.echo(f"\n> {c.author or 'Anonymous'}: {c.text}")
        for r in c.replies:
            typer.echo(f">   {r.author or 'Anonymous'}: {r.text}")


@app.command()
def create(
    title: str = typer.Argument(..., help="Document title"),
    content: Annotated[str | None, typer.Option("--content", "-c", help="Markdown body")] = None,
    file: Annotated[
        Path | None, typer.Option("--file", "-F", help="Read the body from a file")
    ] = None,
    icon: Annotated[str | None, typer.Option("--icon", "-i", help="Emoji icon")] = None,
    tags: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Tag (repeatable)")
    ] = None,
    author: Annotated[str | None, typer.Option("--author", "-a", help="Author name")] = None,
    docs_dir: DocsDirOption = None,
) -> None:
    """Create a document."""
    body = _read_body(content, file) or ""
    try:
        document = _workspace(docs_dir).documents.create_document(
            title, icon=icon, content=body, tags=tags or (), author=author
        )
    except ScriptoryError as e:
        raise _fail(e) from e
    typer.echo(f"Created '{document.title}' [id={document.id}]")


@app.command()
def edit(
    doc_id: str = typer.Argument(..., help="Document id"),
    title: Annotated[str | None, typer.Option("--title", help="New title")] = None,
    content: Annotated[str | None, typer.Option("--content", "-c", help="New body")] = None,
    file: Annotated[
        Path | None, typer.Option("--file", "-F", help="Read the new body from a file")
    ] = None,
    icon: Annotated[str | None, typer.Option("--icon", "-i", help="New icon")] = None,
    tags: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Replacement tag (repeatable)")
    ] = None,
    clear_tags: bool = typer.Option(False, "--clear-tags", help="Remove every existing tag"),
    favorite: Annotated[
        bool | None, typer.Option("--favorite/--no-favorite", help="Set the favorite flag")
    ] = None,
    author: Annotated[
        str | None, typer.Option("--author", "-a", help="Record an edit by this author")
    ] = None,
    docs_dir: DocsDirOption = None,
) -> None:
    """Update a document. A new body is saved as a version."""
    body = _read_body(content, file)
    new_tags = (tags or []) if clear_tags else (tags or None)
    ws = Workspace(
        docs_dir or resolve_docs_directory(), author=author, track_edits=author is not None
    )
    try:
        document = ws.documents.update_document(
            doc_id, title=title, icon=icon, tags=new_tags, favorite=favorite, content=body
        )
    except ScriptoryError as e:
        raise _fail(e) from e
    typer.echo(f"Updated '{document.title}' [id={document.id}]")


@app.command()
def delete(
    doc_id: str = typer.Argument(..., help="Document id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    docs_dir: DocsDirOption = None,
) -> None:
    """Delete a document and its version history."""
    if not yes:
        typer.confirm(f"Delete '{doc_id}' and all its versions?", abort=True)
    try:
        removed = _workspace(docs_dir).documents.delete_document(doc_id)
    except ScriptoryError as e:
        raise _fail(e) from e
    typer.echo(f"Deleted {doc_id}" if removed else f"Document '{doc_id}' not found.")


@app.command()
def versions(
    doc_id: str = typer.Argument(..., help="Document id"),
    docs_dir: DocsDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """List saved versions of a document, newest first."""
    ws = _workspace(docs_dir)
    if not ws.documents.exists(doc_id):
        logger.error("Document '{}' not found", doc_id)
        raise typer.Exit(1)
    history = ws.versions.list_versions(doc_id)

    if output_json:
        typer.echo(json.dumps([v.to_dict() for v in history], indent=2, ensure_ascii=False))
        return

    typer.echo(f"{len(history)} versions of {doc_id}:\n")
    for v in history:
        when = ms_to_iso(v.timestamp)
        typer.echo(f"  {v.timestamp}  {when}  {v.message}  ({len(v.content)} chars)")


@app.command()
def restore(
    doc_id: str = typer.Argument(..., help="Document id"),
    timestamp: int = typer.Argument(..., help="Version timestamp (see 'versions')"),
    docs_dir: DocsDirOption = None,
) -> None:
    """Make a saved version the live content again."""
    try:
        _workspace(docs_dir).documents.restore_version(doc_id, timestamp)
    except ScriptoryError as e:
        raise _fail(e) from e
    typer.echo(f"Restored {doc_id} to version {timestamp}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query (supports tag:x and author:x)"),
    tag: Annotated[str | None, typer.Option("--tag", "-t", help="Only this tag")] = None,
    author: Annotated[str | None, typer.Option("--author", "-a", help="Only this author")] = None,
    date_from: Annotated[
        str | None, typer.Option("--from", help="Indexed at or after (ISO-8601)")
    ] = None,
    date_to: Annotated[
        str | None, typer.Option("--to", help="Indexed at or before (ISO-8601)")
    ] = None,
    limit: int = typer.Option(10, "--limit", "-n", help="Max results"),
    docs_dir: DocsDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Search documents by keyword."""
    try:
        hits = _workspace(docs_dir).search_documents(
            query, tag=tag, author=author, date_from=date_from, date_to=date_to
        )
    except ScriptoryError as e:
        raise _fail(e) from e

    if output_json:
        data = {"results": [h.to_dict() for h in hits[:limit]], "total": len(hits)}
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    typer.echo(f"Found {len(hits)} results (showing {min(limit, len(hits))}):\n")
    for h in hits[:limit]:
        typer.echo(f"  [{h.score}] {h.title}  [id={h.id}]")


@app.command()
def reindex(docs_dir: DocsDirOption = None) -> None:
    """Rebuild the search index from every document."""
    count = _workspace(docs_dir).reindex()
    typer.echo(f"Indexed {count} documents")


@app.command(name="git-docs")
def git_docs(
    paths: list[str] = typer.Argument(..., help="Changed files, relative to the repository"),
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Git repository directory"),
    staged: bool = typer.Option(False, "--staged", help="Describe the changes as staged"),
    docs_dir: DocsDirOption = None,
) -> None:
    """Create a document from the uncommitted changes of some files."""
    git = GitCli(repo)
    if not git.is_repo():
        logger.error("Not a git repository: {}", repo)
        raise typer.Exit(1)
    try:
        document = _workspace(docs_dir).generate_git_docs(git, paths, include_staged=staged)
    except ScriptoryError as e:
        raise _fail(e) from e
    typer.echo(f"Created '{document.title}' [id={document.id}]")


@app.command()
def stats(
    days: int = typer.Option(14, "--days", help="Days of activity to show"),
    docs_dir: DocsDirOption = None,
    output_json: JsonOption = False,
) -> None:
    """Show view and edit statistics."""
    analytics = _workspace(docs_dir).analytics
    totals = analytics.get_stats()
    most_viewed = analytics.get_most_viewed(5)
    heatmap = analytics.get_activity_heatmap(days)

    if output_json:
        data = {**totals, "mostViewed": most_viewed, "activity": heatmap}
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    typer.echo(
        f"{totals['totalViews']} views, {totals['totalEdits']} edits by "
        f"{totals['totalContributors']} contributors across {totals['uniqueDocuments']} documents\n"
    )
    if most_viewed:
        typer.echo("Most viewed:")
        for entry in most_viewed:
            last = datetime.fromtimestamp(entry["lastView"] / 1000, tz=UTC)
            typer.echo(f"  {entry['count']:>5}  {entry['id']}  (last {last:%Y-%m-%d %H:%M})")
        typer.echo()
    typer.echo("Activity:")
    for day, count in heatmap.items():
        typer.echo(f"  {day}  {'#' * count}")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from scriptory.mcp.server import run_mcp_server

    run_mcp_server()


@config_app.command("get")
def config_get(
    key: Annotated[str | None, typer.Argument(help="Setting name (default: all)")] = None,
) -> None:
    """Print user settings."""
    config = load_user_config()
    if key is None:
        typer.echo(json.dumps(config, indent=2, ensure_ascii=False))
        return
    if key not in config:
        logger.error("Unknown setting: {}. Valid keys: {}", key, ", ".join(VALID_CONFIG_KEYS))
        raise typer.Exit(1)
    typer.echo(str(config[key]))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Change a user setting."""
    try:
        set_user_config(key, value)
    except ScriptoryError as e:
        raise _fail(e) from e
    typer.echo(f"{key} = {value}")
