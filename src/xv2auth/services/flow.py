"""Authorization code flow helpers.

Builds the authorization URL a user must visit and turns what comes back
(the redirect callback URL, or a code pasted by hand) into an authorization
code, validating the CSRF state on the way.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from xv2auth.models.config import AuthConfig
from xv2auth.models.errors import AuthorizationCallbackError
from xv2auth.models.flow import AuthorizationRequest, AuthorizationResponse
from xv2auth.models.security import PKCEParameters
from xv2auth.primitives.pkce import PKCEManager
from xv2auth.services.security import generate_state, validate_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingAuthorization:
    """An authorization attempt waiting for its callback."""

    authorization_url: str
    pkce: PKCEParameters = field(repr=False)
    state: str = field(repr=False)


class AuthorizationFlow:
    """Starts authorization attempts and processes their callbacks."""

    def __init__(self, config: AuthConfig, pkce_manager: PKCEManager | None = None):
        self.config = config
        self._pkce_manager = pkce_manager or PKCEManager()

    def start(self, scopes: Iterable[str] | None = None) -> PendingAuthorization:
        """Start an authorization attempt.

        Generates fresh PKCE parameters and state, then builds the URL the
        user should visit to grant access.

        Args:
            scopes: Scopes to request, defaults to ``config.scopes``
        """
        pkce = self._pkce_manager.generate_parameters()
        state = generate_state()
        request = AuthorizationRequest.for_attempt(self.config, pkce, state, scopes)

        logger.info(f"Generated authorization URL for client {self.config.client_id}")

        return PendingAuthorization(authorization_url=request.url(), pkce=pkce, state=state)

    def extract_code(self, callback: str, expected_state: str) -> str:
        """Get the authorization code out of a callback.

        Args:
            callback: Full redirect URL from the authorization server, or the
                bare authorization code copied by the user
            expected_state: State sent with the authorization request. Only
                checked when a full callback URL is given.

        Raises:
            AuthorizationCallbackError: If the callback is empty, reports an
                error, or carries no code
            StateValidationError: If the state is missing or doesn't match
        """
        callback = callback.strip()
        if not callback:
            raise AuthorizationCallbackError("Authorization code cannot be empty")

        if "?" not in callback and "://" not in callback:
            return callback

        auth_response = AuthorizationResponse.from_callback_url(callback)
        validate_state(expected_state, auth_response.state)

        if auth_response.is_error():
            logger.warning(
                f"Authorization callback contained error: {auth_response.error} - "
                f"{auth_response.error_description}"
            )
            raise AuthorizationCallbackError(
                f"Authorization failed: {auth_response.error} "
                f"({auth_response.error_description or ''})"
            )
        if auth_response.code is None:
            raise AuthorizationCallbackError("Missing authorization code")

        logger.info("Authorization callback successful - received authorization code")
        return auth_response.code
