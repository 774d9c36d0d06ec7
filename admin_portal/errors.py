"""Error taxonomy shared by the normalizer, the upstream clients and payouts.

Normalization never raises for optional fields; only a payload that cannot be
parsed, or that has no ``id``, raises ``MalformedResponseError``. Payout
failures are returned to callers as typed results rather than raised through
HTTP, see ``admin_portal.services.payout``.
"""


class MalformedResponseError(Exception):
    """Top-level upstream payload is not JSON or lacks an identity field."""


class LocalValidationError(Exception):
    """Input rejected before any network call was made."""


class IncompleteBankDetailsError(LocalValidationError):
    """Neither complete bank details nor a mobile-money phone are available."""


class RequestCancelledError(Exception):
    """The owning request was torn down while an upstream call was in flight."""


class UpstreamError(Exception):
    """Non-success response or transport failure from an upstream service."""

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = True):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable


class CmsError(UpstreamError):
    """The content API rejected a request."""


class GatewayError(UpstreamError):
    """The payment or notification gateway rejected a request."""


class PersistenceWarning(UserWarning):
    """A recipient code could not be written back to the person record."""
