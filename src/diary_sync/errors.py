"""Domain error hierarchy for the diary sync core.

Every error carries an ``error_type`` slug that the tool layer uses to
build structured error responses:

- ``NotFoundError`` (``not_found``): no entry, episode, or hunk for a key.
- ``ConflictError`` (``conflict``): re-sync of a date with a pending
  episode.
- ``InvalidRequestError`` (``invalid_request``): toggle direction mismatch,
  malformed date or query.
- ``UpstreamUnavailableError`` (``upstream_unavailable``): remote fetch
  failure or timeout.
- ``StorageFailureError`` (``storage_failure``): persistence layer error.
"""

from __future__ import annotations


class DiaryError(Exception):
    """Base class for all diary sync errors."""

    error_type = "server_error"


class NotFoundError(DiaryError):
    """No entry, episode, or hunk exists for the given key."""

    error_type = "not_found"


class ConflictError(DiaryError):
    """The operation collides with a pending conflict episode."""

    error_type = "conflict"


class InvalidRequestError(DiaryError, ValueError):
    """The request is malformed or inconsistent with stored state."""

    error_type = "invalid_request"


class UpstreamUnavailableError(DiaryError):
    """The remote source could not be read."""

    error_type = "upstream_unavailable"


class StorageFailureError(DiaryError):
    """The local store failed to read or write."""

    error_type = "storage_failure"
