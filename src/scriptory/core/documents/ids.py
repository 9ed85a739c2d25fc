"""Document id derivation and validation."""

import re
from collections.abc import Iterator

from scriptory.errors import InvalidInputError

# Used when a title has no ASCII letters or digits at all.
FALLBACK_ID = "untitled"


def slugify(title: str) -> str:
    """Lowercase, collapse every run of non-alphanumerics to '-', trim dashes."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def candidate_ids(title: str) -> Iterator[str]:
    """Yield ids to try for a new document: the slug, then slug-1, slug-2, ..."""
    base = slugify(title) or FALLBACK_ID
    yield base
    count = 0
    while True:
        count += 1
        yield f"{base}-{count}"


def validate_id(doc_id: str) -> str:
    """Reject ids that could address anything but a document directory.

    Ids of documents created outside scriptory (hand-made folders) need not be
    slugs, so only path tricks and hidden names are refused.
    """
    if (
        not doc_id
        or doc_id.startswith(".")
        or "/" in doc_id
        or "\\" in doc_id
        or "\x00" in doc_id
    ):
        msg = f"Invalid document id: {doc_id!r}"
        raise InvalidInputError(msg)
    return doc_id
