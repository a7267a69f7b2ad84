"""Password hashing and password policy."""

import re

from passlib.context import CryptContext

# At least 8 characters with a lowercase letter, an uppercase letter,
# a digit and one of @$!%*?&
PASSWORD_POLICY = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$"
)


def meets_password_policy(password: str) -> bool:
    return PASSWORD_POLICY.match(password) is not None


class PasswordService:
    """Service for hashing and verifying passwords using bcrypt.

    Uses passlib's CryptContext for secure password hashing with
    automatic salt generation and configurable work factor.
    """

    def __init__(self, rounds: int = 12):
        """Initialize the password service.

        Args:
            rounds: bcrypt work factor (default 12; tests use the minimum, 4)
        """
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hash: str) -> bool:
        """Verify a password against a hash.

        Malformed or unknown hashes never match.
        """
        try:
            return self._context.verify(password, hash)
        except ValueError:
            return False

    def needs_rehash(self, hash: str) -> bool:
        return self._context.needs_update(hash)
