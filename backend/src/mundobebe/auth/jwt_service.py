"""JWT token generation and validation service."""

from __future__ import annotations

import time
from dataclasses import dataclass

import jwt


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid or malformed."""

    pass


@dataclass(frozen=True)
class TokenClaims:
    """Decoded claims of a token.

    Attributes:
        user_id: Subject (user id)
        role: Role at issue time (access tokens only)
        email: Email at issue time
        exp: Expiry (epoch seconds)
        iat: Issued-at (epoch seconds)
        type: "access" or "reset"
    """

    user_id: str
    role: str | None
    email: str | None
    exp: int
    iat: int
    type: str


class JWTService:
    """Service for generating and validating JWT tokens.

    Uses HS256 algorithm with a shared secret key.
    """

    # Token TTLs
    ACCESS_TOKEN_TTL = 12 * 60 * 60  # 12 hours
    RESET_TOKEN_TTL = 60 * 60  # 1 hour

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_ttl: int | None = None,
    ):
        """Initialize the JWT service.

        Args:
            secret_key: Secret key for signing tokens (should be at least 32 chars)
            algorithm: JWT algorithm (default HS256)
            access_token_ttl: Override for the access token lifetime, in seconds
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_ttl = access_token_ttl or self.ACCESS_TOKEN_TTL

    @property
    def access_token_ttl(self) -> int:
        return self._access_ttl

    def _encode(self, claims: dict) -> str:
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def generate_access_token(self, user_id: str, role: str, email: str) -> str:
        """Generate a session (access) token.

        Args:
            user_id: The authenticated user's ID
            role: User's role
            email: User's email

        Returns:
            Signed JWT
        """
        now = int(time.time())
        return self._encode({
            "sub": user_id,
            "role": role,
            "email": email,
            "iat": now,
            "exp": now + self._access_ttl,
            "type": "access",
        })

    def decode_token(self, token: str) -> TokenClaims:
        """Decode and validate a JWT token.

        Args:
            token: The JWT token string

        Returns:
            TokenClaims with the decoded claims

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        return TokenClaims(
            user_id=payload.get("sub", ""),
            role=payload.get("role"),
            email=payload.get("email"),
            exp=payload.get("exp", 0),
            iat=payload.get("iat", 0),
            type=payload.get("type", "access"),
        )

    def validate_access_token(self, token: str) -> TokenClaims:
        """Decode a token and require it to be an access token.

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or not an access token
        """
        claims = self.decode_token(token)
        if claims.type != "access":
            raise InvalidTokenError("Not an access token")
        return claims

    def generate_reset_token(self, user_id: str, email: str) -> str:
        """Generate a password reset token.

        Args:
            user_id: The user's ID
            email: The user's email, checked again on reset

        Returns:
            JWT token for password reset (valid for 1 hour)
        """
        now = int(time.time())
        return self._encode({
            "sub": user_id,
            "email": email,
            "iat": now,
            "exp": now + self.RESET_TOKEN_TTL,
            "type": "reset",
        })

    def validate_reset_token(self, token: str) -> TokenClaims:
        """Validate a password reset token.

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or not a reset token
        """
        claims = self.decode_token(token)
        if claims.type != "reset":
            raise InvalidTokenError("Not a password reset token")
        return claims
