from __future__ import annotations

import hmac
from typing import Optional

from .errors import AuthError, SecretNotConfiguredError

ADMIN_SECRET_HEADER = "x-admin-secret"


def validate_admin_secret(provided: Optional[str], configured: Optional[str]) -> None:
    """
    Raise unless `provided` matches the server-side admin secret. There is no
    other authorization state: every call carries the secret.
    """
    if not configured:
        raise SecretNotConfiguredError("Admin secret is not configured on server.")
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), configured.encode("utf-8")):
        raise AuthError("Unauthorized: Invalid Admin Secret")
