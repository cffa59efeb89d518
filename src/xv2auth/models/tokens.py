"""Credential and token endpoint models.

``Credential`` is the immutable value the token store swaps as a whole.
``TokenResponse`` is the wire shape returned by the token endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel


class AuthState(str, Enum):
    """Lifecycle state of an authenticator."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Credential:
    """An issued access token and the data needed to replace it.

    ``expires_at`` is a unix timestamp computed once, when the token was
    issued, from the provider's ``expires_in``.
    """

    access_token: str = field(repr=False)
    expires_at: float
    refresh_token: str | None = field(default=None, repr=False)
    scope: frozenset[str] = frozenset()
    token_type: str = "bearer"

    def is_valid(self, margin: float, now: float) -> bool:
        """Check the token outlives ``now`` by more than ``margin`` seconds."""
        return now + margin < self.expires_at

    def expires_in(self, now: float) -> float:
        """Seconds left before literal expiry (negative once expired)."""
        return self.expires_at - now


class TokenResponse(BaseModel):
    """OAuth 2.0 token response (RFC 6749 Section 5).

    Holds both success fields (Section 5.1) and error fields (Section 5.2);
    every field is optional so that error bodies parse too.
    """

    access_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None

    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        """Check the response carries everything a Credential needs."""
        return (
            self.error is None
            and bool(self.access_token)
            and self.expires_in is not None
        )

    def is_error(self) -> bool:
        return self.error is not None

    def scopes(self) -> frozenset[str]:
        """Granted scopes; the provider sends them space-separated."""
        if not self.scope:
            return frozenset()
        return frozenset(self.scope.split())

    def to_credential(self, issued_at: float) -> Credential:
        """Convert a successful response into a Credential.

        Args:
            issued_at: Unix timestamp at which the response was received

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to Credential")

        return Credential(
            access_token=self.access_token,
            expires_at=issued_at + self.expires_in,
            refresh_token=self.refresh_token,
            scope=self.scopes(),
            token_type=self.token_type,
        )


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3)."""

    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str = field(repr=False)  # RFC 7636 PKCE

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for an application/x-www-form-urlencoded body."""
        return {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token request parameters (RFC 6749 Section 6)."""

    refresh_token: str = field(repr=False)
    client_id: str

    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        return {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }
