"""Error taxonomy for the highlighter workspace.

Structural edit errors (``ConflictError``, ``InvalidMoveError``,
``InvalidNameError``) abort the edit and leave state unchanged.
Geocode and storage errors are caught at their call sites and turned into
workspace warnings or a storage fallback.
"""

from __future__ import annotations


class HighlighterError(Exception):
    """Base class for all workspace errors."""


class ConflictError(HighlighterError):
    """A sibling group (or move destination child) already has this name."""


class InvalidMoveError(HighlighterError):
    """A group cannot be moved into itself or one of its descendants."""


class InvalidNameError(HighlighterError, ValueError):
    """Group names must be non-empty and must not contain '/'."""


class NotFoundError(HighlighterError):
    """The geocoding service returned no usable geometry."""


class NetworkError(HighlighterError):
    """The geocoding service could not be reached or returned an HTTP error."""


class StorageError(HighlighterError):
    """A durable store read or write failed."""
