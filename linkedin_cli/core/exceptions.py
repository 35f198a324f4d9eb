"""
Error taxonomy for LinkedIn requests.

Every failure surfaced by the client carries a single-line human message;
HTTP-derived failures also carry the status code (0 for transport errors).
"""
from typing import Optional


class LinkedInError(Exception):
    """Base exception for all LinkedIn data-access failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CredentialsError(LinkedInError):
    """Session cookies are missing or unusable."""


class DiscoveryFailedError(LinkedInError):
    """Query-ID discovery could not resolve any requested operation."""

    def __init__(
        self,
        message: str,
        bundles_scanned: Optional[int] = None,
        timeout_ms: Optional[int] = None,
    ):
        super().__init__(message)
        self.bundles_scanned = bundles_scanned
        self.timeout_ms = timeout_ms


class SearchBackendUnavailableError(LinkedInError):
    """The experimental search backend returned an unusable first page."""


class LinkedInApiError(LinkedInError):
    """A request reached LinkedIn (or failed on the way) and did not succeed."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class AuthError(LinkedInApiError):
    """Session expired or was invalidated (401 or redirect-based invalidation)."""


class ForbiddenError(LinkedInApiError):
    """403."""


class NotFoundError(LinkedInApiError):
    """404."""


class InvalidRequestError(LinkedInApiError):
    """400."""


class RateLimitedError(LinkedInApiError):
    """429 persisted after all backoff retries."""


class UpstreamBlockedError(LinkedInApiError):
    """LinkedIn's non-standard 999 status."""


class NetworkError(LinkedInApiError):
    """Transport-level failure; status is always 0."""

    def __init__(self, message: str):
        super().__init__(0, message)


class StaleQueryIdError(LinkedInApiError):
    """A GraphQL request was rejected, most likely because its query ID rotated."""
