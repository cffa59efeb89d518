"""Access token lifecycle for the X API v2.

The Authenticator hands out bearer tokens that stay valid for at least the
configured safety margin. It refreshes them on demand, lets at most one
token exchange run at a time, and falls back to the PKCE authorization code
flow when no refresh token is left.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time
from collections.abc import Iterable
from typing import Awaitable, Callable, Protocol

from xv2auth.models.config import SEED_ACCESS_TOKEN_LIFETIME, AuthConfig
from xv2auth.models.errors import (
    AuthorizationCallbackError,
    AuthorizationRequiredError,
    AuthProviderError,
)
from xv2auth.models.tokens import AuthState, Credential
from xv2auth.services.flow import AuthorizationFlow, PendingAuthorization
from xv2auth.services.store import TokenStore
from xv2auth.services.tokens import TokenExchanger

logger = logging.getLogger(__name__)

RefreshTokenCallback = Callable[[str], Awaitable[None] | None]


class AuthorizationHandler(Protocol):
    """Protocol for handling the user authorization step.

    Allows different strategies for user interaction:
    - Prompting on a terminal for the pasted code
    - Opening a browser and running a local callback server
    - Custom UI integration
    """

    async def handle_authorization(self, authorization_url: str) -> str:
        """Have the user authorize and return what came back.

        Args:
            authorization_url: Authorization URL for the user to visit

        Returns:
            The redirect callback URL, or the bare authorization code
        """
        ...


class ManualAuthorizationHandler:
    """Authorization handler that relies on the user copying things by hand.

    Passes the authorization URL to ``callback_handler`` (sync or async) and
    returns what it gives back. Without one, prints the URL and reads the
    pasted callback URL or code from the terminal.
    """

    def __init__(
        self,
        callback_handler: Callable[[str], Awaitable[str] | str] | None = None,
    ):
        self.callback_handler = callback_handler

    async def handle_authorization(self, authorization_url: str) -> str:
        if self.callback_handler is not None:
            result = self.callback_handler(authorization_url)
            if inspect.isawaitable(result):
                result = await result
            return result

        return await asyncio.to_thread(
            input,
            f"Open this URL in your browser and authorize the app:\n"
            f"{authorization_url}\n"
            f"Then paste the redirect URL or code here: ",
        )


class Authenticator:
    """Caches, refreshes and acquires access tokens for one client.

    Concurrent ``get_token()`` calls that find the cached credential missing
    or about to expire share a single exchange and all receive its result,
    success or error. A caller that stops waiting does not cancel that
    exchange: it still completes and updates the cache, since rotating refresh
    tokens can only be spent once.

    Create one per client and pass it to everything that needs tokens.
    """

    def __init__(
        self,
        config: AuthConfig,
        exchanger: TokenExchanger | None = None,
        store: TokenStore | None = None,
        authorization_handler: AuthorizationHandler | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the authenticator.

        Args:
            config: Client configuration, optionally with seed tokens
            exchanger: Token endpoint client, created from ``config`` if omitted
            store: Credential holder, a new empty one if omitted
            authorization_handler: Called with the authorization URL when no
                refresh token is available. Without one, ``get_token()``
                raises AuthorizationRequiredError in that case.
            clock: Source of unix timestamps
        """
        self.config = config
        self._clock = clock
        self._exchanger = exchanger or TokenExchanger(config, clock=clock)
        self._store = store or TokenStore()
        self._flow = AuthorizationFlow(config)
        self._authorization_handler = authorization_handler

        self._refresh_token = config.refresh_token
        self._pending: PendingAuthorization | None = None
        self._inflight: asyncio.Task[Credential] | None = None
        self._refresh_token_callback: RefreshTokenCallback | None = None

        if config.access_token and self._store.read() is None:
            expires_at = config.access_token_expires_at
            if expires_at is None:
                expires_at = clock() + SEED_ACCESS_TOKEN_LIFETIME
            self._store.replace(
                Credential(
                    access_token=config.access_token,
                    expires_at=expires_at,
                    refresh_token=config.refresh_token,
                )
            )

        current = self._store.read()
        if current is not None and current.refresh_token:
            self._refresh_token = current.refresh_token
        self._state = (
            AuthState.AUTHENTICATED if current is not None else AuthState.UNAUTHENTICATED
        )

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def credential(self) -> Credential | None:
        """Snapshot of the cached credential, possibly expired."""
        return self._store.read()

    def on_refresh_token(self, callback: RefreshTokenCallback) -> None:
        """Register a callback for newly issued refresh tokens.

        Called (sync or async) whenever the provider issues a refresh token
        different from the one in use, so it can be persisted. Errors raised
        by the callback are logged and do not fail the token request.
        """
        self._refresh_token_callback = callback

    async def get_token(self) -> str:
        """Return an access token valid for at least the safety margin.

        Cached tokens are returned without suspending. Otherwise the in-flight
        exchange is joined, or started if there is none.

        Raises:
            TransportError: The token endpoint could not be reached
            AuthProviderError: The provider rejected the exchange
            ProtocolError: The provider's response was malformed
            AuthorizationRequiredError: No refresh token and no authorization
                handler; the error carries the URL the user must visit
        """
        credential = self._store.read()
        if credential is not None and credential.is_valid(
            self.config.safety_margin, self._clock()
        ):
            return credential.access_token

        if credential is not None:
            logger.debug(
                f"Access token expires in {credential.expires_in(self._clock()):.0f}s, "
                f"refreshing"
            )

        credential = await self._await_exchange(self._ensure_exchange(self._acquire))
        return credential.access_token

    def start_authorization(self, scopes: Iterable[str] | None = None) -> str:
        """Begin a new authorization attempt and return its URL.

        Replaces any earlier pending attempt; its PKCE verifier is discarded.

        Args:
            scopes: Scopes to request, defaults to ``config.scopes``
        """
        self._pending = self._flow.start(scopes)
        return self._pending.authorization_url

    async def complete_authorization(self, callback: str) -> str:
        """Finish the pending authorization attempt and return the access token.

        Waits for any exchange already in flight, then exchanges the code as
        the single in-flight exchange.

        Args:
            callback: Redirect callback URL (its state is validated) or the
                bare authorization code

        Raises:
            AuthorizationCallbackError: If no attempt is pending or the
                callback is invalid
            StateValidationError: If the callback state doesn't match
            TransportError, AuthProviderError, ProtocolError: As for get_token
        """
        pending = self._pending
        if pending is None:
            raise AuthorizationCallbackError(
                "No authorization in progress; call start_authorization() first"
            )

        while self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})

        task = self._ensure_exchange(lambda: self._exchange_code(pending, callback))
        credential = await self._await_exchange(task)
        return credential.access_token

    def invalidate(self) -> None:
        """Drop the cached access token, e.g. after the API answered 401.

        The refresh token is kept, so the next ``get_token()`` refreshes and
        the state stays AUTHENTICATED. Without one the state drops to
        UNAUTHENTICATED.
        """
        self._store.clear()
        if self._state is AuthState.AUTHENTICATED and self._refresh_token is None:
            self._state = AuthState.UNAUTHENTICATED
        logger.debug("Cached access token invalidated")

    async def aclose(self) -> None:
        """Let any in-flight exchange finish, then release the HTTP client."""
        if self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})
        await self._exchanger.close()
        self._store.clear()

    async def __aenter__(self) -> Authenticator:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _ensure_exchange(
        self, exchange: Callable[[], Awaitable[Credential]]
    ) -> asyncio.Task[Credential]:
        """Return the in-flight exchange task, starting ``exchange`` if idle.

        Contains no await, so check and start are atomic on the event loop.
        """
        if self._inflight is None or self._inflight.done():
            task = asyncio.create_task(
                self._run_exchange(exchange), name="xv2auth_token_exchange"
            )
            task.add_done_callback(self._on_exchange_done)
            self._inflight = task
        return self._inflight

    async def _await_exchange(self, task: asyncio.Task[Credential]) -> Credential:
        # Shielded: a waiter's cancellation must not cancel the exchange.
        return await asyncio.shield(task)

    def _on_exchange_done(self, task: asyncio.Task[Credential]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Marks the exception retrieved even if every waiter gave up.
            task.exception()

    async def _run_exchange(
        self, exchange: Callable[[], Awaitable[Credential]]
    ) -> Credential:
        previous_state = self._state
        self._state = AuthState.AUTHENTICATING
        try:
            credential = await exchange()
        except BaseException:
            self._state = (
                AuthState.UNAUTHENTICATED
                if self._refresh_token is None
                else previous_state
            )
            raise
        self._state = AuthState.AUTHENTICATED
        return credential

    async def _acquire(self) -> Credential:
        """Pick the exchange path: refresh if possible, else authorize."""
        refresh_token = self._refresh_token
        if refresh_token is not None:
            return await self._refresh(refresh_token)
        return await self._authorize()

    async def _refresh(self, refresh_token: str) -> Credential:
        try:
            credential = await self._exchanger.exchange_refresh(refresh_token)
        except AuthProviderError as e:
            if e.error == "invalid_grant":
                # The refresh token itself is dead; retrying cannot succeed.
                logger.warning(
                    f"Refresh token rejected ({e.error}); user authorization required"
                )
                if self._refresh_token == refresh_token:
                    self._refresh_token = None
            raise

        logger.info("Access token refreshed")
        return await self._accept(credential, refresh_token)

    async def _authorize(self) -> Credential:
        if self._authorization_handler is None:
            pending = self._pending or self._flow.start()
            self._pending = pending
            raise AuthorizationRequiredError(pending.authorization_url)

        logger.info("No refresh token available, starting user authorization")
        pending = self._flow.start()
        self._pending = pending
        callback = await self._authorization_handler.handle_authorization(
            pending.authorization_url
        )
        return await self._exchange_code(pending, callback)

    async def _exchange_code(
        self, pending: PendingAuthorization, callback: str
    ) -> Credential:
        code = self._flow.extract_code(callback, pending.state)
        try:
            credential = await self._exchanger.exchange_code(
                code, pending.pkce.code_verifier
            )
        finally:
            # The verifier is single-use whatever the outcome.
            if self._pending is pending:
                self._pending = None

        logger.info("Authorization code exchanged for access token")
        return await self._accept(credential, None)

    async def _accept(
        self, credential: Credential, previous_refresh_token: str | None
    ) -> Credential:
        """Store a freshly issued credential and publish a rotated refresh token."""
        if credential.refresh_token is None and previous_refresh_token is not None:
            credential = dataclasses.replace(
                credential, refresh_token=previous_refresh_token
            )

        self._refresh_token = credential.refresh_token
        self._store.replace(credential)

        if (
            credential.refresh_token is not None
            and credential.refresh_token != previous_refresh_token
        ):
            await self._notify_refresh_token(credential.refresh_token)

        return credential

    async def _notify_refresh_token(self, refresh_token: str) -> None:
        if self._refresh_token_callback is None:
            return
        try:
            result = self._refresh_token_callback(refresh_token)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Refresh token callback failed")
