"""Rejection kinds surfaced by the ingestion layer.

Each kind carries an HTTP status and a machine-stable ``code`` so that both the
HTTP layer and conversational agents can react to it without parsing messages.
"""

from __future__ import annotations


class IngestionError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class InvalidPayload(IngestionError):
    status_code = 400
    code = "invalid_payload"


class Unauthorized(IngestionError):
    status_code = 401
    code = "unauthorized"


class NotFound(IngestionError):
    status_code = 404
    code = "not_found"


class Ambiguous(IngestionError):
    status_code = 409
    code = "ambiguous_goal_name"


class QuotaExceeded(IngestionError):
    status_code = 409
    code = "quota_exceeded"


class RecordGoalMismatch(IngestionError):
    status_code = 409
    code = "record_goal_mismatch"


class AllocationExhausted(IngestionError):
    status_code = 500
    code = "id_allocation_exhausted"


class CredentialConflict(IngestionError):
    """More than one user owns the same key hash; never treated as a match."""

    status_code = 500
    code = "credential_conflict"


class UpstreamUnavailable(IngestionError):
    status_code = 502
    code = "upstream_unavailable"
