"""Bearer-token authentication middleware and route guards."""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from constants import ROLE_ADMIN, ROLE_USER
from core.container import container
from core.logging import get_logger

logger = get_logger(__name__)

# Path prefixes that require a valid bearer token
PROTECTED_PREFIXES = (
    "/api/users",
    "/api/jobs",
    "/api/auth/me",
)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token part of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware to protect routes requiring authentication."""

    async def dispatch(self, request: Request, call_next):
        if not self._is_protected_path(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("authorization"))
        if not token:
            return JSONResponse(status_code=401, content={"error": "No token provided"})

        try:
            user = await container.user_auth_service().get_current_user(token)
        except Exception as e:
            logger.error("Token verification crashed", error=str(e))
            return JSONResponse(status_code=500, content={"error": "Auth failed"})

        if not user:
            return JSONResponse(status_code=401, content={"error": "Invalid token"})

        # Attach user info to request state for downstream handlers
        request.state.user = {
            "id": user.id,
            "email": user.email,
            "role": user.role or ROLE_USER,
        }
        return await call_next(request)

    def _is_protected_path(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in PROTECTED_PREFIXES)


def get_request_user(request: Request) -> Dict[str, Any]:
    """Authenticated user attached by AuthMiddleware."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(status_code=401, detail="No token provided")
    return user


def require_admin(request: Request) -> Dict[str, Any]:
    """Route dependency that only lets admins through."""
    user = get_request_user(request)
    if user.get("role") != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def is_self_or_admin(user: Dict[str, Any], user_id: str) -> bool:
    return user.get("id") == user_id or user.get("role") == ROLE_ADMIN
