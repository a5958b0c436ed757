"""Custom exceptions for the whiteboard labeler."""

from typing import Optional


class LabelerError(Exception):
    """Base class for every recoverable labeler failure."""

    code = "labeler_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ChunkValidationError(LabelerError, ValueError):
    """A draft chunk or save request is incomplete; the caller should re-prompt."""

    code = "validation_error"


class AuthenticationError(LabelerError):
    """No usable session, or the identity provider rejected the credentials."""

    code = "auth_error"

    def __init__(self, detail: str, *, status: Optional[int] = None):
        super().__init__(detail)
        self.status = status


class StoreError(LabelerError):
    """The relational store (or its RPC layer) failed."""

    code = "store_error"


class NotFoundError(LabelerError):
    """A row lookup returned nothing."""

    code = "not_found"


class ViewClosedError(LabelerError):
    """Work was scheduled on a view that has already gone away."""

    code = "view_closed"
