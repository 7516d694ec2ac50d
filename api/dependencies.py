"""
Dependency Injection Functions
==============================

FastAPI dependency injection for the user store, asset store, auth service
and authentication.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from api.services.asset_store import AssetStoreProtocol
from api.services.auth_service import AuthService
from api.services.user_store import UserStoreProtocol
from api.utils.cookies import ACCESS_TOKEN_COOKIE
from api.utils.file_handler import FileHandler
from config import Settings, get_settings
from models import User

# Security scheme for JWT Bearer tokens
security = HTTPBearer(auto_error=False)


def get_user_store() -> UserStoreProtocol:
    """
    Dependency to get the user store from app state.

    The store is created and initialized during application startup
    (lifespan).

    Raises:
        HTTPException: 503 if the store is not initialized
    """
    from api.main import app_state

    store = app_state.get("user_store")
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User store not initialized. Service is starting up."
        )
    return store


def get_asset_store() -> Optional[AssetStoreProtocol]:
    """
    Dependency to get the asset store from app state.

    Returns None when Cloudinary is not configured; flows that need it
    report the failure themselves.
    """
    from api.main import app_state

    return app_state.get("asset_store")


def get_file_handler(settings: Settings = Depends(get_settings)) -> FileHandler:
    return FileHandler(settings)


def get_auth_service(
    user_store: UserStoreProtocol = Depends(get_user_store),
    asset_store: Optional[AssetStoreProtocol] = Depends(get_asset_store),
    file_handler: FileHandler = Depends(get_file_handler),
    settings: Settings = Depends(get_settings)
) -> AuthService:
    return AuthService(
        user_store=user_store,
        asset_store=asset_store,
        file_handler=file_handler,
        settings=settings
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Dependency to get the current authenticated user.

    The access token is read from the accessToken cookie, or from an
    `Authorization: Bearer` header when no cookie is present.

    Returns:
        User: The authenticated user

    Raises:
        AuthError: 401 if the token is missing, invalid or its user is gone
    """
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token and credentials is not None:
        token = credentials.credentials

    return await auth_service.authenticate(token)
