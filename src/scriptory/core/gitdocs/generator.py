"""Generate a document describing uncommitted git changes."""

import io
import shlex
import subprocess
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

from loguru import logger

from scriptory.core.documents.store import DocumentStore
from scriptory.errors import InvalidInputError
from scriptory.models.document import Document
from scriptory.protocols import GitProtocol

GIT_DOC_ICON = "📝"
MAX_FILE_PREVIEW = 1000


class GitCli:
    """GitProtocol implementation shelling out to the git binary."""

    def __init__(self, repo_dir: str | Path) -> None:
        self.repo_dir = Path(repo_dir).resolve()

    def _run(self, *args: str) -> str:
        cmd = ["git", *args]
        logger.debug("Running: {}", " ".join(map(shlex.quote, cmd)))
        return subprocess.check_output(cmd, cwd=self.repo_dir, stderr=subprocess.DEVNULL).decode(
            "utf-8", errors="replace"
        )

    def is_repo(self) -> bool:
        try:
            return self._run("rev-parse", "--is-inside-work-tree").strip() == "true"
        except (OSError, subprocess.CalledProcessError):
            return False

    def branch(self) -> str:
        return self._run("branch", "--show-current").strip()

    def author(self) -> str:
        try:
            return self._run("config", "user.name").strip()
        except subprocess.CalledProcessError:
            return ""

    def email(self) -> str:
        try:
            return self._run("config", "user.email").strip()
        except subprocess.CalledProcessError:
            return ""

    def last_commit_message(self) -> str | None:
        try:
            return self._run("log", "-1", "--pretty=format:%s").strip() or None
        except subprocess.CalledProcessError:
            return None

    def diff(self, path: str) -> str:
        return self._run("diff", "HEAD", "--", path)

    def read_file(self, path: str) -> str | None:
        full = (self.repo_dir / path).resolve()
        if self.repo_dir not in full.parents:
            return None
        try:
            return full.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None


def render_changes_markdown(
    git: GitProtocol,
    files: list[str],
    *,
    include_staged: bool = False,
    generated_at: datetime | None = None,
) -> str:
    """Render diffs and current contents of the given files as Markdown."""
    generated_at = generated_at or datetime.now(tz=UTC)
    status = "Staged" if include_staged else "Modified"
    out = io.StringIO()

    print("# Git Changes Documentation\n", file=out)
    print(f"**Generated:** {generated_at:%Y-%m-%d %H:%M} UTC", file=out)
    print(f"**Author:** {git.author()} <{git.email()}>", file=out)
    print(f"**Branch:** {git.branch()}", file=out)
    print(f"**Commit:** {git.last_commit_message() or 'Initial changes'}\n", file=out)
    print("## Summary\n", file=out)
    print("This documentation was automatically generated from Git changes.\n", file=out)
    print(f"**Files Changed:** {len(files)}\n", file=out)
    print("---\n", file=out)
    print("## Changed Files\n", file=out)

    for path in files:
        print(f"### `{path}`\n", file=out)
        try:
            diff = git.diff(path)
        except (OSError, subprocess.CalledProcessError):
            logger.warning("Could not diff {}", path)
            print("**Error:** Could not read file changes.\n", file=out)
            print("---\n", file=out)
            continue

        contents = git.read_file(path)
        if contents is None:
            contents = "File not readable"
        elif len(contents) > MAX_FILE_PREVIEW:
            contents = contents[:MAX_FILE_PREVIEW] + "\n\n... (truncated)"

        print(f"**Status:** {status}\n", file=out)
        print("**Changes:**\n", file=out)
        print(f"```diff\n{diff.rstrip() or 'No changes to display'}\n```\n", file=out)
        print("**Current Content:**\n", file=out)
        print(f"```{PurePosixPath(path).suffix.lstrip('.')}\n{contents}\n```\n", file=out)
        print("---\n", file=out)

    return out.getvalue()


def generate_git_document(
    store: DocumentStore,
    git: GitProtocol,
    files: list[str],
    *,
    include_staged: bool = False,
) -> Document:
    """Store a new document describing the changes in the given files.

    Raises:
        InvalidInputError: If no files are given.
    """
    if not files:
        msg = "No files selected for documentation"
        raise InvalidInputError(msg)

    now = datetime.now(tz=UTC)
    content = render_changes_markdown(git, files, include_staged=include_staged, generated_at=now)
    tags = ["git", "auto-generated"]
    branch = git.branch()
    if branch:
        tags.append(branch)

    document = store.create_document(
        f"Git Changes - {now:%Y-%m-%d}", icon=GIT_DOC_ICON, content=content, tags=tags
    )
    logger.info("Generated {} from {} changed file(s)", document.id, len(files))
    return document
