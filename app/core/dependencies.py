"""
Common dependencies for FastAPI routes.
"""

from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def _decode_token(token: str) -> Optional[dict]:
    """Decode JWT token. Import here to avoid circular imports."""
    from app.auth.service import AuthService
    return AuthService.decode_token(token)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.
    Returns user dict with 'id' (and 'email' when the token carries one).
    """
    payload = _decode_token(credentials.credentials) if credentials else None

    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {
        "id": str(payload["sub"]),
        "email": payload.get("email"),
    }


def get_status_store(request: Request):
    """Status store built in the application lifespan."""
    return request.app.state.status_store


def get_dispatch_service(request: Request):
    """Job dispatch gateway wired with the shared queue client and status store."""
    return request.app.state.dispatch_service
