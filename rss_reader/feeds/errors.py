from __future__ import annotations


class FeedAdminError(Exception):
    """Base class for failures surfaced by feed administration."""


class ValidationError(FeedAdminError):
    """A required field is missing or malformed. Raised before any network call."""


class AuthError(FeedAdminError):
    """The admin secret is missing, wrong, or not configured on the server."""


class FeedNotFoundError(FeedAdminError):
    pass


class TransientNetworkError(FeedAdminError):
    """The store could not be reached or failed mid-request."""


class SecretNotConfiguredError(AuthError):
    """The server has no admin secret, so no mutation can be authorized."""
