from typing import Optional

from fastapi import Depends, Header, Request

from .errors import AuthError
from .models import User
from .services.registry import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization.split(" ", 1)[1].strip() or None


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> User:
    """
    Validate the bearer token issued at login/register and return the user.
    """
    return await services.auth.authenticate(_bearer_token(authorization))


async def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> Optional[User]:
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        return await services.auth.authenticate(token)
    except AuthError:
        return None
