"""File access confined to the documentation directory."""

import json
import shutil
from pathlib import Path
from typing import Any

from loguru import logger

from scriptory.errors import StorageError


class FileStore:
    """Read and write files relative to a root directory.

    - Paths must be relative and must not escape the root.
    - Files whose contents did not change are not rewritten, so mtimes
      stay meaningful.
    - JSON is written pretty-printed with a trailing newline.

    Every method is a single filesystem round trip; callers that need to
    combine several must serialize themselves.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def path(self, fname_rel: str | Path) -> Path:
        """Resolve a relative name to an absolute path inside the root."""
        if Path(fname_rel).is_absolute():
            msg = f"must be relative: {str(fname_rel)!r}"
            raise ValueError(msg)
        full = (self.root / fname_rel).resolve()
        if full != self.root and self.root not in full.parents:
            msg = f"Path escapes root: {str(fname_rel)!r}"
            raise ValueError(msg)
        return full

    def exists(self, fname_rel: str | Path) -> bool:
        return self.path(fname_rel).exists()

    def ensure_dir(self, dirname_rel: str | Path = ".") -> Path:
        full = self.path(dirname_rel)
        try:
            full.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create directory {str(full)!r}: {e}"
            raise StorageError(msg) from e
        return full

    def write_text(self, fname_rel: str | Path, contents: str) -> None:
        """Write text to a file, skipping the write if contents are unchanged.

        Raises:
            StorageError: On any I/O failure.
        """
        full = self.path(fname_rel)
        try:
            if full.read_text(encoding="utf-8") == contents:
                return
        except (FileNotFoundError, UnicodeDecodeError):
            pass
        except OSError as e:
            msg = f"Cannot read {str(full)!r}: {e}"
            raise StorageError(msg) from e

        logger.debug("Writing {}", full)
        try:
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(contents, encoding="utf-8")
        except OSError as e:
            msg = f"Cannot write {str(full)!r}: {e}"
            raise StorageError(msg) from e

    def write_json(self, fname_rel: str | Path, data: Any) -> None:
        contents = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
        self.write_text(fname_rel, contents)

    def read_text(self, fname_rel: str | Path) -> str:
        """Read a text file.

        Raises:
            FileNotFoundError: If the file does not exist.
            StorageError: On any other I/O failure.
        """
        full = self.path(fname_rel)
        try:
            return full.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Cannot read {str(full)!r}: {e}"
            raise StorageError(msg) from e

    def read_json(self, fname_rel: str | Path) -> Any:
        """Read and parse a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist.
            StorageError: If the file cannot be read or is not valid JSON.
        """
        contents = self.read_text(fname_rel)
        try:
            return json.loads(contents)
        except ValueError as e:
            msg = f"Corrupt JSON in {str(fname_rel)!r}: {e}"
            raise StorageError(msg) from e

    def try_read_json(self, fname_rel: str | Path) -> Any | None:
        """Read JSON, returning None if the file is missing or unparsable.

        For auxiliary artifacts whose absence is not an error.
        """
        try:
            return self.read_json(fname_rel)
        except FileNotFoundError:
            return None
        except StorageError as e:
            logger.warning("Ignoring unreadable file: {}", e)
            return None

    def list_dirs(self, dirname_rel: str | Path = ".") -> list[str]:
        """Names of visible subdirectories, sorted. Dot-directories are skipped."""
        full = self.path(dirname_rel)
        try:
            entries = list(full.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            msg = f"Cannot list {str(full)!r}: {e}"
            raise StorageError(msg) from e
        return sorted(p.name for p in entries if p.is_dir() and not p.name.startswith("."))

    def list_files(self, dirname_rel: str | Path, *, suffix: str = "") -> list[str]:
        """Names of files in a directory with the given suffix, sorted."""
        full = self.path(dirname_rel)
        try:
            entries = list(full.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            msg = f"Cannot list {str(full)!r}: {e}"
            raise StorageError(msg) from e
        return sorted(p.name for p in entries if p.is_file() and p.name.endswith(suffix))

    def remove_file(self, fname_rel: str | Path) -> None:
        self.path(fname_rel).unlink(missing_ok=True)

    def remove_tree(self, dirname_rel: str | Path) -> bool:
        """Remove a directory subtree. Returns False if it did not exist."""
        full = self.path(dirname_rel)
        if full == self.root:
            msg = "Refusing to remove the root directory"
            raise ValueError(msg)
        if not full.exists():
            return False
        logger.debug("Removing dir: {}", full)
        try:
            shutil.rmtree(full)
        except OSError as e:
            msg = f"Cannot remove {str(full)!r}: {e}"
            raise StorageError(msg) from e
        return True
