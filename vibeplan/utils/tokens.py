"""Invite-token generation and validation."""

import secrets

# Base58: no 0, O, I or l, so tokens survive being read aloud or retyped.
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

DEFAULT_TOKEN_LENGTH = 12


def generate_invite_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Return a cryptographically random base58 token of ``length`` chars."""
    return "".join(secrets.choice(BASE58_ALPHABET) for _ in range(length))


def is_valid_invite_token(token: object, length: int = DEFAULT_TOKEN_LENGTH) -> bool:
    if not isinstance(token, str) or len(token) != length:
        return False
    return all(ch in BASE58_ALPHABET for ch in token)


def mask_token(token: str) -> str:
    """Shorten a token for log output."""
    return f"{token[:4]}…" if token else ""
