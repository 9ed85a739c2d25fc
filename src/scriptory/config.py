"""Configuration constants and user settings for scriptory."""

import json
import os
from pathlib import Path
from typing import Any

from scriptory.errors import InvalidInputError

# Name of the documentation directory inside a project root.
DOCS_DIRNAME: str = "scriptory"

# Hidden entries inside the documentation directory. Document ids never start with a dot.
VERSIONS_DIRNAME: str = ".versions"
ANALYTICS_DIRNAME: str = ".analytics"
SEARCH_INDEX_FILENAME: str = ".search-index.json"
COLLECTIONS_FILENAME: str = ".collections.json"
WEBHOOKS_FILENAME: str = ".webhooks.json"

DEFAULT_ICON: str = "📄"

# Retention limits.
MAX_VERSIONS: int = 20
MAX_VIEW_HISTORY: int = 1000
MAX_EDIT_LOG: int = 10_000
MAX_SEARCH_HISTORY_STORED: int = 100
MAX_SEARCH_HISTORY_SHOWN: int = 50
MAX_RECENT_VIEWS: int = 20

# Tokens of this length or shorter are not indexed.
MIN_TOKEN_LENGTH: int = 3

WEBHOOK_TIMEOUT: float = 5.0

# User-level settings, shared by every project.
USER_CONFIG_DIR: Path = Path("~/.config/scriptory").expanduser()
VALID_CONFIG_KEYS: tuple[str, ...] = ("DEEPLINK_PREFIX",)
DEFAULT_USER_CONFIG: dict[str, Any] = {"DEEPLINK_PREFIX": "", "initialized": False}


def resolve_docs_directory(root: Path | None = None) -> Path:
    """Return the documentation directory.

    $SCRIPTORY_DOCS_DIR wins; otherwise it is <root>/scriptory, with root
    defaulting to the current working directory.
    """
    env_dir = os.environ.get("SCRIPTORY_DOCS_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    return (root or Path.cwd()) / DOCS_DIRNAME


def user_config_path() -> Path:
    env_dir = os.environ.get("SCRIPTORY_CONFIG_DIR")
    base = Path(env_dir).expanduser() if env_dir else USER_CONFIG_DIR
    return base / "config.json"


def load_user_config() -> dict[str, Any]:
    """Read the user config, falling back to defaults if missing or unreadable."""
    try:
        data = json.loads(user_config_path().read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return dict(DEFAULT_USER_CONFIG)
    if not isinstance(data, dict):
        return dict(DEFAULT_USER_CONFIG)
    return {**DEFAULT_USER_CONFIG, **data}


def save_user_config(config: dict[str, Any]) -> None:
    path = user_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")


def set_user_config(key: str, value: str) -> dict[str, Any]:
    """Set one user setting and return the updated config.

    Raises:
        InvalidInputError: If key is not a recognised setting.
    """
    if key not in VALID_CONFIG_KEYS:
        msg = f"Invalid key: {key!r}. Valid keys: {', '.join(VALID_CONFIG_KEYS)}"
        raise InvalidInputError(msg)
    config = load_user_config()
    config[key] = value
    save_user_config(config)
    return config
