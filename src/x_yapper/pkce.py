"""PKCE verifier/challenge and anti-CSRF state generation (RFC 7636, S256)."""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

_CHARSET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
_VERIFIER_LENGTH = 128
_STATE_LENGTH = 32


def generate_random_string(length: int) -> str:
    """Return *length* characters drawn from ``[A-Za-z0-9]``.

    Each byte from the OS CSPRNG is reduced mod 62 to index the charset.
    A failure to read secure randomness propagates; there is no fallback.
    """
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    raw = secrets.token_bytes(length)
    return "".join(_CHARSET[b % len(_CHARSET)] for b in raw)


def generate_code_verifier() -> str:
    return generate_random_string(_VERIFIER_LENGTH)


def generate_code_challenge(verifier: str) -> str:
    """Return base64url(SHA-256(*verifier*)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_state() -> str:
    return generate_random_string(_STATE_LENGTH)


@dataclass(frozen=True)
class PKCEMaterial:
    """Per-run PKCE secrets. Held in memory only."""

    verifier: str
    challenge: str
    state: str

    @classmethod
    def generate(cls) -> PKCEMaterial:
        verifier = generate_code_verifier()
        return cls(
            verifier=verifier,
            challenge=generate_code_challenge(verifier),
            state=generate_state(),
        )
