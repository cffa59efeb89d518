"""What goes out to the authorization endpoint and what comes back."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urlparse

from xv2auth.models.config import AuthConfig
from xv2auth.models.security import PKCEParameters


@dataclass(frozen=True)
class AuthorizationRequest:
    """Query parameters of the X authorization URL for one attempt."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    scope: str
    code_challenge: str
    state: str

    @classmethod
    def for_attempt(
        cls,
        config: AuthConfig,
        pkce: PKCEParameters,
        state: str,
        scopes: Iterable[str] | None = None,
    ) -> AuthorizationRequest:
        """Build the request for a client; ``scopes`` overrides ``config.scopes``."""
        return cls(
            authorization_endpoint=config.authorization_endpoint,
            client_id=config.client_id,
            redirect_uri=config.redirect_uri,
            scope=" ".join(config.scopes if scopes is None else scopes),
            code_challenge=pkce.code_challenge,
            state=state,
        )

    def url(self) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": "S256",
        }
        # X rejects an empty scope parameter.
        if self.scope:
            params["scope"] = self.scope

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    """Query parameters of the redirect back to ``redirect_uri``."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @classmethod
    def from_callback_url(cls, callback_url: str) -> AuthorizationResponse:
        query = parse_qs(urlparse(callback_url).query)

        def first(key: str) -> str | None:
            values = query.get(key)
            return values[0] if values else None

        return cls(
            code=first("code"),
            state=first("state"),
            error=first("error"),
            error_description=first("error_description"),
        )

    def is_error(self) -> bool:
        return self.error is not None
