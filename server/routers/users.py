"""User profile routes. Requests are authenticated by AuthMiddleware."""

from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field

from constants import ROLE_USER, ROLE_ADMIN
from core.container import container
from core.logging import get_logger
from middleware.auth import get_request_user, require_admin, is_self_or_admin
from services.users import UserService, UserNotFoundError

logger = get_logger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])


class UserCreateRequest(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    email: EmailStr
    password: str = Field(min_length=8)
    name: Optional[str] = Field(default=None, max_length=100)
    role: str = ROLE_USER


class UserUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=1000)
    role: Optional[str] = None


def get_user_service() -> UserService:
    return container.user_service()


def error_response(e: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(e)})


@router.get("")
async def list_users(
    admin: Dict[str, Any] = Depends(require_admin),
    user_service: UserService = Depends(get_user_service)
):
    """List all profiles, newest first (admin only)."""
    try:
        users = await user_service.list_users()
        return [user.to_profile() for user in users]
    except Exception as e:
        logger.error("Failed to list users", error=str(e))
        return error_response(e)


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    request: Request,
    user_service: UserService = Depends(get_user_service)
):
    """Get a single profile (self or admin)."""
    if not is_self_or_admin(get_request_user(request), user_id):
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        user = await user_service.get_user(user_id)
        return user.to_profile()
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Failed to get user", user_id=user_id, error=str(e))
        return error_response(e)


@router.post("", status_code=201)
async def create_user(
    body: UserCreateRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    user_service: UserService = Depends(get_user_service)
):
    """Create a profile with login credentials (admin only)."""
    try:
        user = await user_service.create_user(
            email=body.email,
            password=body.password,
            name=body.name,
            role=body.role,
            user_id=body.id,
        )
        return user.to_profile()
    except ValueError as e:
        return error_response(e, status_code=400)
    except Exception as e:
        logger.error("Failed to create user", error=str(e))
        return error_response(e)


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    request: Request,
    user_service: UserService = Depends(get_user_service)
):
    """Update name and avatar (self or admin); role changes are admin only."""
    caller = get_request_user(request)
    if not is_self_or_admin(caller, user_id):
        raise HTTPException(status_code=403, detail="Access denied")

    fields = body.model_dump(exclude_unset=True, exclude={"role"})
    if body.role is not None and caller.get("role") == ROLE_ADMIN:
        fields["role"] = body.role

    try:
        user = await user_service.update_user(user_id, fields)
        return user.to_profile()
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        return error_response(e, status_code=400)
    except Exception as e:
        logger.error("Failed to update user", user_id=user_id, error=str(e))
        return error_response(e)


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    user_service: UserService = Depends(get_user_service)
):
    """Delete a profile (admin only)."""
    try:
        await user_service.delete_user(user_id)
        return Response(status_code=204)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Failed to delete user", user_id=user_id, error=str(e))
        return error_response(e)
