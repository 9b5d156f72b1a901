"""Authentication routes for registration, login and the current user."""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr
from typing import Optional

from core.container import container
from core.logging import get_logger
from middleware.auth import get_request_user
from services.user_auth import UserAuthService
from services.users import UserService, UserNotFoundError

logger = get_logger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def get_user_auth_service() -> UserAuthService:
    return container.user_auth_service()


def get_user_service() -> UserService:
    return container.user_service()


def token_response(user_auth: UserAuthService, user) -> dict:
    return {
        "access_token": user_auth.create_access_token(user),
        "token_type": "bearer",
        "user": user.to_profile(),
    }


@router.post("/register")
async def register(
    request: RegisterRequest,
    user_auth: UserAuthService = Depends(get_user_auth_service)
):
    """
    Register a new user and return a bearer token.
    The first registered account becomes an admin.
    """
    user, error = await user_auth.register(
        email=request.email,
        password=request.password,
        name=request.name
    )
    if error:
        raise HTTPException(status_code=400, detail=error)

    return token_response(user_auth, user)


@router.post("/login")
async def login(
    request: LoginRequest,
    user_auth: UserAuthService = Depends(get_user_auth_service)
):
    """Login with email and password, returning a bearer token."""
    user, error = await user_auth.login(
        email=request.email,
        password=request.password
    )
    if error:
        raise HTTPException(status_code=401, detail=error)

    return token_response(user_auth, user)


@router.get("/me")
async def get_current_user(
    request: Request,
    user_service: UserService = Depends(get_user_service)
):
    """Profile of the authenticated caller."""
    caller = get_request_user(request)
    try:
        user = await user_service.get_user(caller["id"])
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return user.to_profile()
