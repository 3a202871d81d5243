"""Exception hierarchy for sitemap operations.

Route handlers translate these into HTTP status codes; everything below the
API layer raises them and lets them propagate.
"""

from __future__ import annotations


class SitemapError(Exception):
    """Base class for all sitemap failures."""


class NotFoundError(SitemapError):
    """Raised when an entry or the static document does not exist."""


class DuplicateEntryError(SitemapError):
    """Raised when a custom entry with the same url is already stored."""


class MalformedDocumentError(SitemapError):
    """Raised when the static document is not a well-formed sitemap."""


class StorageError(SitemapError):
    """Raised when MongoDB or the static file cannot be written or read."""


class RegenerationFailedError(SitemapError):
    """Raised when the external sitemap generator exits with an error."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
