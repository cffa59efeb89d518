"""Exception hierarchy for OAuth 2.0 credential errors.

Each failure mode gets its own type so callers can tell "try again later"
apart from "run the authorization flow again".
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    retryable: bool = False


class TransportError(OAuth2Error):
    """Raised when the token endpoint could not be reached.

    Covers timeouts, DNS and TLS failures and dropped connections. Safe to
    retry under a caller-defined policy.
    """

    retryable = True


class AuthProviderError(OAuth2Error):
    """Raised when the provider rejects a token request (RFC 6749 Section 5.2).

    Carries the provider's error code and description when the response body
    has them. Rejections like ``invalid_grant`` or ``invalid_client`` are not
    retryable with the same parameters; 429 and 5xx responses are.
    """

    def __init__(
        self,
        error: str,
        description: str | None = None,
        status_code: int | None = None,
        error_uri: str | None = None,
    ):
        self.error = error
        self.description = description
        self.status_code = status_code
        self.error_uri = error_uri

        message = error
        if description:
            message = f"{error}: {description}"
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class ProtocolError(OAuth2Error):
    """Raised when the token endpoint answers with an unexpected shape."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when client configuration is missing or invalid."""

    pass


class PKCEError(ConfigurationError):
    """Raised when PKCE parameters cannot be generated."""

    pass


class AuthorizationRequiredError(OAuth2Error):
    """Raised when no refresh token is left and the user must authorize.

    ``authorization_url`` is the URL the user should open; pass the resulting
    callback to ``Authenticator.complete_authorization``.
    """

    def __init__(self, authorization_url: str):
        self.authorization_url = authorization_url
        super().__init__(
            f"User authorization required. Visit: {authorization_url}"
        )


class AuthorizationCallbackError(OAuth2Error):
    """Raised when the authorization redirect is malformed or reports an error."""

    pass


class StateValidationError(AuthorizationCallbackError):
    """Raised when the OAuth state parameter is missing or does not match.

    A mismatch may indicate a CSRF attempt or a stale authorization attempt.
    """

    pass
