import hashlib
import secrets

# 32 random bytes -> 43 url-safe characters
TOKEN_BYTES = 32


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Deterministic digest used to store and look up invitation tokens."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
