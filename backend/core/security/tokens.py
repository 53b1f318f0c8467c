"""
JWT token service.

Accounts are authenticated by the upstream identity provider; this service
only issues and verifies the access tokens that carry an account's id and
subscription tier.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt


@dataclass
class TokenPayload:
    """JWT token payload structure."""

    sub: str  # Subject (account ID)
    exp: datetime  # Expiration time
    iat: datetime  # Issued at
    type: str  # Token type
    tier: str | None = None
    email: str | None = None


class TokenService:
    """Service for creating and validating JWT tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 30,
    ):
        """
        Initialize the token service.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default: HS256)
            access_token_expire_minutes: Access token expiration in minutes
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(
        self,
        account_id: str,
        tier: str | None = None,
        email: str | None = None,
        expires_in: timedelta | None = None,
    ) -> str:
        """
        Create an access token.

        Args:
            account_id: Account ID to encode in the token
            tier: Subscription tier claim
            email: Optional email to include
            expires_in: Override the default lifetime

        Returns:
            Encoded JWT access token
        """
        now = datetime.now(UTC)
        expire = now + (expires_in or timedelta(minutes=self._access_token_expire_minutes))

        payload = {
            "sub": account_id,
            "exp": expire,
            "iat": now,
            "type": "access",
        }

        if tier:
            payload["tier"] = tier
        if email:
            payload["email"] = email

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenPayload | None:
        """
        Decode and validate a JWT token.

        Returns:
            TokenPayload if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )

            for field in ("sub", "exp", "type"):
                if field not in payload:
                    raise JWTError(f"Missing required field: {field}")

            return TokenPayload(
                sub=payload.get("sub"),
                exp=datetime.fromtimestamp(payload.get("exp"), tz=UTC),
                iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
                type=payload.get("type"),
                tier=payload.get("tier"),
                email=payload.get("email"),
            )
        except JWTError:
            return None

    def verify_access_token(self, token: str) -> TokenPayload | None:
        """
        Verify an access token.

        Returns:
            TokenPayload if valid access token, None otherwise
        """
        payload = self.decode_token(token)
        if payload and payload.type == "access":
            return payload
        return None
