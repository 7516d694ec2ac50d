"""
User Endpoints
==============

User registration, login, logout and token refresh endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile, status

from api.dependencies import get_auth_service, get_current_user
from api.models.requests import LoginRequest, RefreshTokenRequest, RegisterRequest
from api.models.responses import ApiResponse, ErrorResponse, LoginData, TokenData
from api.services.auth_service import AuthService
from api.utils.cookies import REFRESH_TOKEN_COOKIE, clear_auth_cookies, set_auth_cookies
from config import Settings, get_settings
from models import User

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/register",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES
)
async def register_user(
    fullname: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None, description="Avatar image (required)"),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage", description="Cover image"),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new user.

    Multipart form with fullname, email, username, password, an avatar
    file and an optional coverImage file.

    Returns:
        ApiResponse (201) with the sanitized user record
    """
    form = RegisterRequest(
        fullname=fullname,
        email=email,
        username=username,
        password=password
    )
    user = await auth_service.register_user(form, avatar, cover_image)

    return ApiResponse(
        status_code=status.HTTP_201_CREATED,
        data=user.to_response(),
        message="User registered successfully"
    )


@router.post("/login", response_model=ApiResponse, responses=ERROR_RESPONSES)
async def login_user(
    credentials: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings)
):
    """
    Log in with email (or username) and password.

    Sets accessToken and refreshToken cookies and returns both tokens in
    the body as well.
    """
    session = await auth_service.login_user(credentials)
    set_auth_cookies(response, session.tokens, settings)

    data = LoginData(
        user=session.user,
        access_token=session.tokens.access_token,
        refresh_token=session.tokens.refresh_token
    )
    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=data.model_dump(mode="json", by_alias=True),
        message="User logged in successfully"
    )


@router.post("/logout", response_model=ApiResponse, responses=ERROR_RESPONSES)
async def logout_user(
    response: Response,
    user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings)
):
    """Log out the current user and clear both auth cookies."""
    await auth_service.logout_user(user.id)
    clear_auth_cookies(response, settings)

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data={},
        message="User logged out successfully"
    )


@router.post("/refresh-token", response_model=ApiResponse, responses=ERROR_RESPONSES)
async def refresh_access_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = Body(None),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings)
):
    """
    Exchange a refresh token for a new token pair.

    The token is read from the refreshToken cookie, or from the JSON body
    `{"refreshToken": "..."}`. Both cookies are re-set.
    """
    incoming_token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not incoming_token and body is not None:
        incoming_token = body.refresh_token

    tokens = await auth_service.refresh_access_token(incoming_token)
    set_auth_cookies(response, tokens, settings)

    data = TokenData(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=data.model_dump(mode="json", by_alias=True),
        message="Access token refreshed successfully"
    )
