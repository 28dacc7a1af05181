"""Password hashing backed by bcrypt."""

from __future__ import annotations

import bcrypt

# bcrypt only reads the first 72 bytes; newer releases raise on longer input.
BCRYPT_MAX_BYTES = 72


class BcryptPasswordHasher:
    """Salted, slow one-way hashing for stored credentials."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, plaintext: str) -> str:
        """Hash a plain-text password for storage."""
        pw_bytes = plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plaintext: str, digest: str) -> bool:
        """Verify a plain password against a stored hash."""
        pw_bytes = plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(pw_bytes, digest.encode("utf-8"))
        except (ValueError, TypeError):
            return False
