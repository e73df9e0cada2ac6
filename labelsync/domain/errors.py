"""Error taxonomy for catalog sync and reconciliation.

Each error carries the scope it aborts:

- run level: ``AuthError``, ``UnknownLabelError``
- request level: ``RateLimited``, ``TransientCatalogError``
- album level: ``PartialAlbumFailure``, ``MalformedPayload``, ``InvalidExternalId``
- item level: ``NotFound``
- operator level: ``ReconciliationAmbiguous``

``WriteConflict`` exists for completeness; conflict-ignore inserts absorb it
and it is never raised by the writer.
"""


class CatalogSyncError(Exception):
    """Base class for all labelsync errors."""

    error_type = "error"

    def __init__(self, message: str, *, external_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.external_id = external_id


class AuthError(CatalogSyncError):
    """Catalog credentials were rejected or the token endpoint is unreachable."""

    error_type = "auth_error"


class UnknownLabelError(CatalogSyncError):
    """The requested label is not part of the local reference set."""

    error_type = "unknown_label"


class RateLimited(CatalogSyncError):
    """The catalog answered 429 twice for the same request."""

    error_type = "rate_limited"

    def __init__(
        self,
        message: str = "Catalog rate limit exceeded",
        *,
        retry_after: float | None = None,
        external_id: str | None = None,
    ) -> None:
        if retry_after is not None:
            message = f"{message} (retry after {retry_after:g}s)"
        super().__init__(message, external_id=external_id)
        self.retry_after = retry_after


class TransientCatalogError(CatalogSyncError):
    """Timeout, connection failure or 5xx from the catalog; safe to retry."""

    error_type = "transient_error"


class InvalidExternalId(CatalogSyncError):
    """An external ID does not match the catalog's ID shape."""

    error_type = "invalid_external_id"


# Name used at the client boundary, where the check happens before any call
InvalidIdFormat = InvalidExternalId


class NotFound(CatalogSyncError):
    """The catalog has no entity for the given external ID."""

    error_type = "not_found"


class MalformedPayload(CatalogSyncError):
    """A catalog response failed the boundary parse step."""

    error_type = "malformed_payload"


class WriteConflict(CatalogSyncError):
    """Unique-key collision on write."""

    error_type = "write_conflict"


class PartialAlbumFailure(CatalogSyncError):
    """The album could not be written; its transaction was rolled back."""

    error_type = "partial_album_failure"


class ReconciliationAmbiguous(CatalogSyncError):
    """No deterministic rule decides the outcome; needs manual review."""

    error_type = "reconciliation_ambiguous"
