"""PKCE verifier/challenge pair for one authorization attempt."""

from __future__ import annotations

import base64
import hashlib
import re
import secrets
from dataclasses import dataclass, field

# RFC 7636 Section 4.1 unreserved characters, 43-128 of them.
_VERIFIER_PATTERN = re.compile(r"[A-Za-z0-9\-._~]{43,128}")


def s256_challenge(code_verifier: str) -> str:
    """BASE64URL-ENCODE(SHA256(ASCII(code_verifier))), unpadded."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class PKCEParameters:
    """A code verifier and the S256 challenge derived from it.

    Only the challenge is sent with the authorization URL. The verifier goes
    to the token endpoint with the code and is kept out of ``repr``.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str
    code_challenge_method: str = "S256"

    def __post_init__(self) -> None:
        if not _VERIFIER_PATTERN.fullmatch(self.code_verifier):
            raise ValueError(
                "code_verifier must be 43-128 unreserved characters (RFC 7636)"
            )
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
        if not self.matches(self.code_verifier):
            raise ValueError("code_challenge was not derived from code_verifier")

    @classmethod
    def from_verifier(cls, code_verifier: str) -> PKCEParameters:
        return cls(code_verifier=code_verifier, code_challenge=s256_challenge(code_verifier))

    def matches(self, code_verifier: str) -> bool:
        """Check a verifier against this challenge in constant time."""
        return secrets.compare_digest(s256_challenge(code_verifier), self.code_challenge)
