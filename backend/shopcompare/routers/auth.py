from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field

from ..auth import get_current_user, get_services
from ..models import User, UserPreferences
from ..services.registry import Services

router = APIRouter()


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)
    preferences: Optional[UserPreferences] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user_id: str
    email: str


class ProfileResponse(BaseModel):
    user_id: str
    name: str
    email: str
    preferences: UserPreferences


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, services: Services = Depends(get_services)):
    """
    Create an account and return a bearer token for immediate use.
    """
    return await services.auth.register(
        payload.name, payload.email, payload.password, payload.preferences
    )


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, services: Services = Depends(get_services)):
    return await services.auth.login(payload.email, payload.password)


@router.get("/me", response_model=ProfileResponse)
async def me(current_user: User = Depends(get_current_user)):
    return ProfileResponse(
        user_id=current_user.id,
        name=current_user.name,
        email=current_user.email,
        preferences=current_user.preferences,
    )
