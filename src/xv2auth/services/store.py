"""In-memory holder for the current credential."""

from __future__ import annotations

import logging

from xv2auth.models.tokens import Credential

logger = logging.getLogger(__name__)


class TokenStore:
    """Holds the current Credential.

    Credentials are frozen and swapped by a single reference assignment, so a
    reader sees either the old value or the new one, never a mix. Reads never
    block.
    """

    def __init__(self, credential: Credential | None = None):
        self._credential = credential

    def read(self) -> Credential | None:
        """Return a snapshot of the current credential."""
        return self._credential

    def replace(self, credential: Credential) -> None:
        """Atomically swap in a new credential."""
        self._credential = credential
        logger.debug(f"Stored credential expiring at {credential.expires_at:.0f}")

    def clear(self) -> None:
        """Drop the current credential."""
        self._credential = None
