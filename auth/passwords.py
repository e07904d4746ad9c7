"""
auth/passwords.py -- Password hashing with bcrypt.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

The work factor is fixed per PasswordHasher instance (Settings.password_hash_rounds
in production, 4 in tests). The salt is embedded in every hash, so verify()
needs nothing but the stored string.

Plaintext passwords are never logged. Nothing in this module writes a log line
that includes its input.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import PasswordHashingError

logger = logging.getLogger("gatekeeper.auth")

# bcrypt only looks at the first 72 bytes. auth/schemas.py rejects longer
# passwords before they get here.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of plain.

        Raises PasswordHashingError if bcrypt refuses the input; registration
        treats that as fatal.
        """
        try:
            return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(self.rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.error("Password hashing failed: %s", type(exc).__name__)
            raise PasswordHashingError() from exc

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if plain matches hashed. A missing or malformed hash is a mismatch."""
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plain: str) -> None:
        """Spend one bcrypt check against a throwaway hash.

        Login calls this when the identifier is unknown, so the response time
        does not reveal whether an account exists. The dummy hash is built on
        first use and reused after that.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("gatekeeper_timing_dummy")
        self.verify(plain, self._dummy_hash)
