"""
User password hashing.

Argon2id over a per-record random salt. The salt and the derived key are
stored separately (hex) on the user record, so neither ever needs to be
parsed back out of an encoded hash string.
"""

import hmac
import secrets

from argon2.low_level import Type, hash_secret_raw


class PasswordHasher:
    """
    Derives password hashes with Argon2id.

    Security parameters default to time_cost=2, memory_cost=65536 (64MB),
    parallelism=4. Tests lower them to keep runs fast.
    """

    def __init__(
        self,
        time_cost: int = 2,
        memory_cost: int = 65536,  # 64 MB
        parallelism: int = 4,
        hash_len: int = 32,
        salt_len: int = 16,
    ):
        """
        Initialize password hasher.

        Args:
            time_cost: Argon2 time cost (iterations)
            memory_cost: Argon2 memory cost (KB)
            parallelism: Argon2 parallelism (threads)
            hash_len: Output hash length
            salt_len: Salt length
        """
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        self.hash_len = hash_len
        self.salt_len = salt_len

    def make_salt(self) -> str:
        """Fresh random salt, hex encoded."""
        return secrets.token_bytes(self.salt_len).hex()

    def encrypt(self, password: str, salt: str) -> str:
        """
        Derive the hex hash of ``password`` under ``salt``.

        An empty password yields an empty hash, which record validation
        reports as a missing password.
        """
        if not password:
            return ""
        return hash_secret_raw(
            secret=password.encode("utf-8"),
            salt=bytes.fromhex(salt),
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
            hash_len=self.hash_len,
            type=Type.ID,
        ).hex()

    def verify(self, password: str, salt: str, hashed_password: str) -> bool:
        """
        Check ``password`` against a stored salt/hash pair.

        Constant-time comparison to prevent timing attacks.
        """
        if not (password and salt and hashed_password):
            return False
        return hmac.compare_digest(self.encrypt(password, salt), hashed_password)
