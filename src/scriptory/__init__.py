"""File-backed documentation store with versioning, search and analytics."""

from scriptory.core.analytics.engine import AnalyticsEngine
from scriptory.core.documents.store import DocumentStore
from scriptory.core.organization.collections import OrganizationStore
from scriptory.core.search.index import SearchIndex
from scriptory.core.versions.log import VersionLog
from scriptory.errors import InvalidInputError, NotFoundError, ScriptoryError, StorageError
from scriptory.workspace import Workspace

__version__ = "0.1.8"

__all__ = [
    "AnalyticsEngine",
    "DocumentStore",
    "InvalidInputError",
    "NotFoundError",
    "OrganizationStore",
    "ScriptoryError",
    "SearchIndex",
    "StorageError",
    "VersionLog",
    "Workspace",
]
