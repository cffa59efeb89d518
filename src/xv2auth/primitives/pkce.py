"""PKCE (Proof Key for Code Exchange) generation.

Implements RFC 7636 verifier/challenge generation so that an intercepted
authorization code cannot be redeemed by anyone but the client that asked
for it.
"""

from __future__ import annotations

import secrets

from xv2auth.models.errors import PKCEError
from xv2auth.models.security import PKCEParameters, s256_challenge

# 96 random bytes encode to exactly 128 unpadded base64url characters.
VERIFIER_ENTROPY_BYTES = 96


class PKCEManager:
    """Generates PKCE parameters for authorization attempts.

    - Uses the S256 code challenge method (SHA256 + base64url)
    - Draws verifiers from the ``secrets`` CSPRNG
    - Every call yields a fresh pair; nothing is cached or stored
    """

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization attempt.

        Returns:
            PKCEParameters: Immutable parameters for the authorization attempt

        Raises:
            PKCEError: If the system random source is unavailable. This is a
                platform configuration problem, not a retryable condition.
        """
        try:
            code_verifier = self._generate_code_verifier()
        except (NotImplementedError, OSError) as e:
            raise PKCEError(f"Secure random source unavailable: {e}") from e

        return PKCEParameters.from_verifier(code_verifier)

    def verify(self, code_verifier: str, code_challenge: str) -> bool:
        """Check that a challenge was derived from the given verifier."""
        return secrets.compare_digest(s256_challenge(code_verifier), code_challenge)

    def _generate_code_verifier(self) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: 43-128 characters from the unreserved set.
        The base64url alphabet ([A-Za-z0-9-_]) is a subset of it.

        Returns:
            A 128-character code verifier
        """
        return secrets.token_urlsafe(VERIFIER_ENTROPY_BYTES)
