"""CSRF state helpers for the authorization code flow."""

from __future__ import annotations

import secrets

from xv2auth.models.errors import StateValidationError


def generate_state() -> str:
    """Generate a cryptographically secure state parameter.

    Returns:
        URL-safe random state string (43 characters)
    """
    return secrets.token_urlsafe(32)


def validate_state(expected: str, actual: str | None) -> None:
    """Validate state parameter matches expected value.

    Args:
        expected: State parameter from original authorization request
        actual: State parameter from callback URL

    Raises:
        StateValidationError: If the state is missing or doesn't match
    """
    if actual is None:
        raise StateValidationError(
            "Authorization callback missing required state parameter"
        )
    if not secrets.compare_digest(expected, actual):
        raise StateValidationError("State parameter mismatch - possible CSRF attack")
