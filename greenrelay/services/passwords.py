"""Password hashing (bcrypt)"""

import logging

import bcrypt

from .. import config

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Salted bcrypt hashing; every call to hash() produces a new digest"""

    def __init__(self, rounds: int = None):
        self.rounds = rounds or config.BCRYPT_ROUNDS

    @staticmethod
    def _encode(plaintext: str) -> bytes:
        return plaintext.encode("utf-8")[:_BCRYPT_MAX_BYTES]

    def hash(self, plaintext: str) -> str:
        return bcrypt.hashpw(self._encode(plaintext), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plaintext: str, digest: str) -> bool:
        if not plaintext or not digest:
            return False
        try:
            return bcrypt.checkpw(self._encode(plaintext), digest.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Stored password hash is not a valid bcrypt digest: {e}")
            return False
