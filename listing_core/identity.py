"""
Session context for the acting user.

Every operation that needs an identity receives a ``SessionContext``
explicitly. Contexts can be built from a Supabase-issued JWT.
"""

from dataclasses import dataclass
from typing import Optional

import jwt

from .config import settings
from .domain.exceptions import AuthenticationRequired


@dataclass(frozen=True)
class SessionContext:
    """Identity of the acting user; ``user_id`` is None for guests."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    role: str = "authenticated"

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def require_user(self) -> str:
        """
        Return the current user ID.

        Raises:
            AuthenticationRequired: If there is no current user
        """
        if not self.user_id:
            raise AuthenticationRequired("no active session")
        return self.user_id

    @classmethod
    def anonymous(cls) -> "SessionContext":
        return cls()

    @classmethod
    def from_access_token(
        cls, token: str, secret: Optional[str] = None
    ) -> "SessionContext":
        """
        Decode and validate a Supabase JWT access token.

        Args:
            token: The JWT token string, with or without a "Bearer " prefix
            secret: JWT secret (defaults to settings)

        Returns:
            SessionContext for the token's subject

        Raises:
            AuthenticationRequired: If the token is missing, invalid or expired
        """
        if not token:
            raise AuthenticationRequired("access token missing")

        if token.startswith("Bearer "):
            token = token.split(" ", 1)[1]

        secret = secret or settings.SUPABASE_JWT_SECRET
        if not secret:
            raise AuthenticationRequired("SUPABASE_JWT_SECRET is not configured")

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=["HS256"],
                audience="authenticated",  # Supabase default audience
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationRequired("token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationRequired(f"invalid token: {e}")

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationRequired("token has no subject")

        return cls(
            user_id=subject,
            email=payload.get("email"),
            role=payload.get("role", "authenticated"),
        )
