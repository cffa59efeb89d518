"""OAuth 2.0 token endpoint client.

Implements RFC 6749 token endpoint interactions: authorization code exchange
with a PKCE verifier (RFC 7636) and refresh token exchange. Each call is a
single POST; retry policy belongs to the caller.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx
from pydantic import ValidationError

from xv2auth.models.config import AuthConfig
from xv2auth.models.errors import AuthProviderError, ProtocolError, TransportError
from xv2auth.models.tokens import (
    Credential,
    RefreshTokenRequest,
    TokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)


class TokenExchanger:
    """Turns authorization codes and refresh tokens into Credentials.

    Handles the token endpoint interactions including:
    - Authorization code to access token exchange (RFC 6749 Section 4.1.3)
    - Access token refresh (RFC 6749 Section 6)
    - Error response mapping (RFC 6749 Section 5.2)

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    Never touches the token store.
    """

    def __init__(
        self,
        config: AuthConfig,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the token exchanger.

        Args:
            config: Client configuration (endpoint, credentials, timeout)
            http_client: Client to send requests with. When omitted, one is
                created with ``config.timeout`` and closed by ``close()``.
            clock: Source of unix timestamps for computing expiry
        """
        self.config = config
        self._clock = clock
        self._owns_client = http_client is None
        self._closed = False
        self._http_client = http_client or httpx.AsyncClient(timeout=config.timeout)

    async def exchange_code(self, code: str, code_verifier: str) -> Credential:
        """Exchange an authorization code for a Credential.

        Args:
            code: Authorization code from the redirect callback
            code_verifier: PKCE verifier matching the challenge sent with the
                authorization request

        Raises:
            TransportError: If the token endpoint could not be reached
            AuthProviderError: If the provider rejected the request
            ProtocolError: If the response is missing required fields
        """
        logger.debug(f"Exchanging authorization code at {self.config.token_endpoint}")

        token_request = TokenRequest(
            code=code,
            redirect_uri=self.config.redirect_uri,
            client_id=self.config.client_id,
            code_verifier=code_verifier,
        )
        return await self._request_credential(token_request.to_form_data())

    async def exchange_refresh(self, refresh_token: str) -> Credential:
        """Exchange a refresh token for a new Credential.

        The returned Credential carries the rotated refresh token if the
        provider issued one, and ``None`` otherwise.

        Raises:
            TransportError: If the token endpoint could not be reached
            AuthProviderError: If the provider rejected the refresh token
            ProtocolError: If the response is missing required fields
        """
        logger.debug(f"Refreshing access token at {self.config.token_endpoint}")

        refresh_request = RefreshTokenRequest(
            refresh_token=refresh_token,
            client_id=self.config.client_id,
        )
        return await self._request_credential(refresh_request.to_form_data())

    async def _request_credential(self, form_data: dict[str, str]) -> Credential:
        if self._closed:
            raise TransportError("Token exchanger is closed")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        request_kwargs: dict[str, Any] = {"data": form_data, "headers": headers}

        if self.config.client_auth == "basic":
            request_kwargs["auth"] = httpx.BasicAuth(
                self.config.client_id, self.config.client_secret
            )
        else:
            form_data["client_secret"] = self.config.client_secret

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}, "
            f"client_auth={self.config.client_auth}"
        )

        # Taken before sending: latency only ever shortens the computed lifetime.
        issued_at = self._clock()

        try:
            response = await self._http_client.post(
                self.config.token_endpoint, **request_kwargs
            )
        except httpx.HTTPError as e:
            logger.warning(f"Token endpoint unreachable: {e!r}")
            raise TransportError(f"HTTP error during token request: {e}") from e

        return self._parse_token_response(response, issued_at)

    def _parse_token_response(
        self, response: httpx.Response, issued_at: float
    ) -> Credential:
        """Parse a token endpoint response into a Credential.

        Raises:
            AuthProviderError: On non-2xx responses, or 2xx bodies with an error
            ProtocolError: If a 2xx body is not a usable token response
        """
        if not 200 <= response.status_code < 300:
            raise self._provider_error(response)

        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Malformed token response from provider: {e}")
            raise ProtocolError(f"Invalid token response format: {e}") from e

        if token_response.is_error():
            logger.warning(
                f"Token endpoint returned {response.status_code} with error "
                f"{token_response.error}"
            )
            raise AuthProviderError(
                token_response.error,
                token_response.error_description,
                response.status_code,
                token_response.error_uri,
            )

        if not token_response.is_success():
            missing = [
                name
                for name in ("access_token", "expires_in")
                if getattr(token_response, name) in (None, "")
            ]
            logger.error(f"Token response missing required fields: {missing}")
            raise ProtocolError(f"Token response missing required fields: {missing}")

        logger.info("Token exchange successful")
        return token_response.to_credential(issued_at)

    def _provider_error(self, response: httpx.Response) -> AuthProviderError:
        """Build an AuthProviderError from an RFC 6749 Section 5.2 error body."""
        error_code = "unknown_error"
        description = None
        error_uri = None

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error_code = body.get("error") or error_code
            description = body.get("error_description")
            error_uri = body.get("error_uri")

        logger.warning(
            f"Token request failed with {response.status_code}: "
            f"{error_code} - {description or 'No description provided'}"
        )

        return AuthProviderError(
            str(error_code), description, response.status_code, error_uri
        )

    async def close(self) -> None:
        """Stop accepting requests and close the HTTP client if this exchanger created it."""
        self._closed = True
        if self._owns_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def __aenter__(self) -> TokenExchanger:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
