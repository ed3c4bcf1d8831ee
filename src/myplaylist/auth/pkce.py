"""PKCE code verifier and S256 code challenge generation (:rfc:`7636`).

Pure functions with no side effects. The verifier is drawn from the
unreserved URL-safe alphabet using :mod:`secrets`, so it is suitable as a
one-time secret.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

VERIFIER_LENGTH = 64
VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"


def generate_verifier(length: int = VERIFIER_LENGTH) -> str:
    """Return a random code verifier of *length* unreserved characters."""
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def code_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for *verifier*.

    SHA-256 over the UTF-8 bytes, base64url-encoded with the trailing
    ``=`` padding removed. Returns ``""`` if *verifier* cannot be encoded
    as UTF-8 (lone surrogates), which never happens for generated input.
    """
    try:
        data = verifier.encode("utf-8")
    except UnicodeEncodeError:
        return ""
    digest = hashlib.sha256(data).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    verifier = generate_verifier()
    return verifier, code_challenge(verifier)
