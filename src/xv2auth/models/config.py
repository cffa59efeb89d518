"""Client configuration for the X API v2 OAuth 2.0 authenticator.

Configuration is supplied once, at construction, either programmatically or
from environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from xv2auth.models.errors import ConfigurationError

DEFAULT_AUTHORIZATION_ENDPOINT = "https://x.com/i/oauth2/authorize"
DEFAULT_TOKEN_ENDPOINT = "https://api.x.com/2/oauth2/token"
DEFAULT_REDIRECT_URI = "http://localhost:8080/callback"
DEFAULT_SCOPES = ("tweet.read", "tweet.write", "users.read", "offline.access")

CLIENT_AUTH_METHODS = ("body", "basic")

# Assumed lifetime of a seeded access token whose expiry is unknown.
SEED_ACCESS_TOKEN_LIFETIME = 300.0


@dataclass(frozen=True)
class AuthConfig:
    """
    Immutable OAuth 2.0 client configuration.

    Attributes:
        client_id: OAuth 2.0 client ID from the developer portal
        client_secret: OAuth 2.0 client secret from the developer portal
        refresh_token: Optional refresh token to start from (e.g. persisted
            from an earlier run)
        access_token: Optional access token to serve before the first exchange
        access_token_expires_at: Unix timestamp at which ``access_token``
            expires. When unknown the token is assumed to live
            SEED_ACCESS_TOKEN_LIFETIME seconds from construction.
        redirect_uri: Callback URI registered with the app
        authorization_endpoint: Provider authorization endpoint
        token_endpoint: Provider token endpoint
        scopes: Scopes requested during authorization
        safety_margin: Treat tokens as expired this many seconds early
        timeout: Network timeout for token endpoint calls, in seconds
        client_auth: Send client credentials in the form body ("body") or
            as HTTP Basic auth ("basic")
    """

    client_id: str
    client_secret: str = field(repr=False)
    refresh_token: str | None = field(default=None, repr=False)
    access_token: str | None = field(default=None, repr=False)
    access_token_expires_at: float | None = None

    redirect_uri: str = DEFAULT_REDIRECT_URI
    authorization_endpoint: str = DEFAULT_AUTHORIZATION_ENDPOINT
    token_endpoint: str = DEFAULT_TOKEN_ENDPOINT
    scopes: tuple[str, ...] = DEFAULT_SCOPES

    safety_margin: float = 30.0
    timeout: float = 10.0
    client_auth: str = "body"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.client_id:
            raise ConfigurationError("client_id cannot be empty")

        if not self.client_secret:
            raise ConfigurationError("client_secret cannot be empty")

        if self.access_token_expires_at is not None and not self.access_token:
            raise ConfigurationError(
                "access_token_expires_at given without access_token"
            )

        if self.safety_margin < 0:
            raise ConfigurationError("safety_margin cannot be negative")

        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")

        if self.client_auth not in CLIENT_AUTH_METHODS:
            raise ConfigurationError(
                f"client_auth must be one of {CLIENT_AUTH_METHODS}, "
                f"got {self.client_auth!r}"
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> AuthConfig:
        """
        Load configuration from environment variables.

        Required environment variables:
            X_CLIENT_ID: OAuth 2.0 client ID
            X_CLIENT_SECRET: OAuth 2.0 client secret

        Optional environment variables:
            X_REFRESH_TOKEN: Seed refresh token
            X_BEARER_TOKEN: Seed access token
            X_BEARER_TOKEN_EXPIRES_AT: Unix timestamp at which X_BEARER_TOKEN
                expires
            X_REDIRECT_URI: Callback URI (default: http://localhost:8080/callback)

        Args:
            environ: Mapping to read instead of ``os.environ``

        Raises:
            ConfigurationError: If required environment variables are missing
                or X_BEARER_TOKEN_EXPIRES_AT is not a number
        """
        env = os.environ if environ is None else environ

        client_id = env.get("X_CLIENT_ID")
        client_secret = env.get("X_CLIENT_SECRET")

        if not client_id or not client_secret:
            raise ConfigurationError(
                "Missing X OAuth 2.0 credentials. Set environment variables:\n"
                "  X_CLIENT_ID=your_client_id\n"
                "  X_CLIENT_SECRET=your_client_secret"
            )

        expires_at = env.get("X_BEARER_TOKEN_EXPIRES_AT") or None
        if expires_at is not None:
            try:
                expires_at = float(expires_at)
            except ValueError as e:
                raise ConfigurationError(
                    f"X_BEARER_TOKEN_EXPIRES_AT must be a Unix timestamp, got {expires_at!r}"
                ) from e

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=env.get("X_REFRESH_TOKEN") or None,
            access_token=env.get("X_BEARER_TOKEN") or None,
            access_token_expires_at=expires_at,
            redirect_uri=env.get("X_REDIRECT_URI", DEFAULT_REDIRECT_URI),
        )
