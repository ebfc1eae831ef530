"""PKCE (RFC 7636) verifier and S256 challenge generation."""

from __future__ import annotations

import base64
import hashlib
import re
import secrets

from caldav_cli.oauth.models import PkceChallenge

VERIFIER_LENGTH = 128

_UNRESERVED = re.compile(r"[^A-Za-z0-9\-._~]")


def generate_verifier(length: int = VERIFIER_LENGTH) -> str:
    """Return a random code verifier of *length* unreserved characters.

    96 random bytes encode to exactly 128 base64url characters (768 bits of
    entropy), all of which are already in the unreserved set.
    """
    if not 43 <= length <= 128:
        raise ValueError("PKCE verifier length must be between 43 and 128")
    raw = base64.urlsafe_b64encode(secrets.token_bytes(96)).decode("ascii")
    return _UNRESERVED.sub("", raw)[:length]


def derive_challenge(verifier: str) -> str:
    """SHA-256 the verifier and base64url-encode it without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_pkce_challenge() -> PkceChallenge:
    """Generate a fresh verifier/challenge pair for one authorization attempt."""
    verifier = generate_verifier()
    return PkceChallenge(verifier=verifier, challenge=derive_challenge(verifier))
