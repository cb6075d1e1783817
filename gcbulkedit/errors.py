"""Error taxonomy shared by the ledger, the stores and the HTTP layer."""

from fastapi import status


class LedgerError(Exception):
    """Base class for errors that map onto a JSON error response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "internal_server_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(LedgerError):
    """Missing or malformed email, id or action count."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_input"


class NotFound(LedgerError):
    """The operation needs an existing customer (or document) that is absent."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class ConflictError(LedgerError):
    """The email is already linked to a different customer."""

    status_code = status.HTTP_409_CONFLICT
    error = "conflict"


class UpstreamUnavailable(LedgerError):
    """The payment gateway or the store failed or timed out. Safe to retry."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "upstream_unavailable"


class SignatureInvalid(LedgerError):
    """Webhook payload failed signature verification."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "signature_invalid"
