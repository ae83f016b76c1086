"""Authentication service - JWT encoding and decoding.

User accounts live in a separate service; this backend only trusts the
bearer token and reads the user id from its ``sub`` claim.
"""

from datetime import datetime, timedelta
from typing import Optional
import jwt

from app.core.config import get_settings


class AuthService:
    """Handles access token operations."""

    @staticmethod
    def create_access_token(user_id: str, email: Optional[str] = None) -> str:
        """Create a JWT access token."""
        settings = get_settings()
        expire = datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
        payload = {
            "sub": user_id,
            "exp": expire,
            "iat": datetime.utcnow(),
        }
        if email:
            payload["email"] = email
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Optional[dict]:
        """Decode and validate a JWT token."""
        settings = get_settings()
        try:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM]
            )
            return payload
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
