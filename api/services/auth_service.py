"""
Auth Service
============

Registration and session flows: register, login, logout, refresh, plus
the token issuer they share.

Registration touches two stores that cannot share a transaction:

    validate → check duplicate → require avatar → stage files
        → upload avatar → upload cover (optional)
        → create record → reload sanitized

When the record cannot be created (or re-read) after the uploads went
through, every uploaded asset is deleted again. Cleanup failures are
logged and never replace the original error.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from fastapi import UploadFile
from jose import JWTError

from api.models.requests import LoginRequest, RegisterRequest
from api.models.user import PublicUser, SessionResult
from api.services.asset_store import AssetStoreProtocol
from api.services.user_store import UserStoreProtocol
from api.utils.file_handler import FileHandler
from api.utils.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_access_token,
    verify_password,
    verify_refresh_token,
)
from config import Settings, get_settings
from exceptions import (
    AssetUploadError,
    AuthError,
    DocumentStoreError,
    DuplicateRecordError,
    InvalidCredentialsError,
    InvalidTokenError,
    RegistrationError,
    TokenIssueError,
    UpstreamError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)
from models import TokenPair, UploadedAsset, User


logger = logging.getLogger(__name__)


def _is_blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def _has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


class AuthService:
    """
    Orchestrates the user and session flows over a user store and an
    asset store.

    Usage:
        service = AuthService(user_store, asset_store)
        user = await service.register_user(form, avatar, cover_image)
        session = await service.login_user(LoginRequest(email=..., password=...))
    """

    def __init__(
        self,
        user_store: UserStoreProtocol,
        asset_store: Optional[AssetStoreProtocol] = None,
        file_handler: Optional[FileHandler] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.user_store = user_store
        self.asset_store = asset_store
        self.file_handler = file_handler or FileHandler(self.settings)

    # =========================================================================
    # Token Issuer
    # =========================================================================

    async def issue_tokens(self, user_id: str) -> TokenPair:
        """
        Mint a new access/refresh pair and store the refresh token.

        The stored refresh token is overwritten unconditionally, so the
        most recent login or refresh is the only valid session.

        Raises:
            TokenIssueError: If the user cannot be loaded or updated
        """
        try:
            user = await self.user_store.get(user_id)
            if user is None:
                raise TokenIssueError()

            access_token = create_access_token(user, settings=self.settings)
            refresh_token = create_refresh_token(user.id, settings=self.settings)

            updated = await self.user_store.update(user.id, {"refreshToken": refresh_token})
            if updated is None:
                raise TokenIssueError()
        except DocumentStoreError as e:
            logger.error(f"Token issuance failed for user {user_id}: {e}")
            raise TokenIssueError() from e

        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    # =========================================================================
    # Registration
    # =========================================================================

    async def register_user(
        self,
        form: RegisterRequest,
        avatar: Optional[UploadFile],
        cover_image: Optional[UploadFile] = None
    ) -> PublicUser:
        """
        Register a new user with an avatar and an optional cover image.

        Raises:
            ValidationError: Missing field or missing avatar (400)
            UserAlreadyExistsError: Username or email taken (409)
            AssetUploadError: Avatar upload failed (500)
            RegistrationError: Record could not be created (500)
        """
        if any(_is_blank(v) for v in (form.fullname, form.email, form.username, form.password)):
            raise ValidationError("All fields are required")

        username = form.username.strip().lower()
        email = form.email

        existing = await self.user_store.find_by_username_or_email(username, email)
        if existing is not None:
            raise UserAlreadyExistsError()

        if not _has_file(avatar):
            raise ValidationError("Avatar file is required")

        if self.asset_store is None:
            raise UpstreamError("Asset storage is not available")

        staged: list[Path] = []
        try:
            avatar_path = await self.file_handler.save_upload_file(avatar)
            staged.append(avatar_path)

            cover_path = None
            if _has_file(cover_image):
                cover_path = await self.file_handler.save_upload_file(cover_image)
                staged.append(cover_path)

            avatar_asset = await self._upload_avatar(avatar_path)
            cover_asset = await self._upload_cover(cover_path) if cover_path else None
        finally:
            for path in staged:
                self.file_handler.cleanup_file(path)

        fields = {
            "fullname": form.fullname,
            "email": email,
            "username": username,
            "password": await asyncio.to_thread(hash_password, form.password),
            "avatar": avatar_asset.url,
            "coverImage": cover_asset.url if cover_asset else "",
        }
        created = await self._create_user(fields, [avatar_asset, cover_asset])

        logger.info(f"User registered: {created.username} ({created.id})")
        return created

    async def _upload_avatar(self, path: Path) -> UploadedAsset:
        try:
            asset = await self.asset_store.upload(path)
        except AssetUploadError as e:
            logger.error(f"Avatar upload error: {e}")
            raise AssetUploadError("Failed to upload avatar", str(path)) from e

        if not asset.url:
            raise AssetUploadError("Failed to upload avatar", str(path))
        return asset

    async def _upload_cover(self, path: Path) -> Optional[UploadedAsset]:
        try:
            asset = await self.asset_store.upload(path)
        except Exception as e:
            logger.warning(f"Cover image upload failed but continuing registration: {e}")
            return None

        if not asset.url:
            logger.warning("Cover image upload returned no URL, continuing registration")
            return None
        return asset

    async def _create_user(
        self,
        fields: dict,
        uploaded: Sequence[Optional[UploadedAsset]]
    ) -> PublicUser:
        try:
            user = await self.user_store.create(fields)
            created = await self.user_store.get(user.id)
        except DuplicateRecordError as e:
            logger.error(f"Database error: {e}")
            await self.cleanup_assets(uploaded)
            raise UserAlreadyExistsError("Username or email already exists") from e
        except DocumentStoreError as e:
            logger.error(f"Database error: {e}")
            await self.cleanup_assets(uploaded)
            raise RegistrationError("Failed to register user") from e

        if created is None:
            await self.cleanup_assets(uploaded)
            raise RegistrationError("Failed to create user after file upload")

        return PublicUser.from_user(created)

    async def cleanup_assets(self, assets: Sequence[Optional[UploadedAsset]]) -> None:
        """
        Delete uploaded assets from the asset store, best effort.

        Each asset is deleted exactly once; failures are logged and
        swallowed.
        """
        targets = [asset for asset in assets if asset is not None]
        if not targets:
            return

        results = await asyncio.gather(
            *(self.asset_store.delete(asset.public_id) for asset in targets),
            return_exceptions=True
        )
        for asset, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(f"Cleanup error for asset {asset.public_id}: {result}")

    # =========================================================================
    # Session Flows
    # =========================================================================

    async def login_user(self, request: LoginRequest) -> SessionResult:
        """
        Check credentials and open a new session.

        Raises:
            ValidationError: Email missing (400)
            UserNotFoundError: No user for email or username (400)
            InvalidCredentialsError: Wrong password (401)
        """
        if _is_blank(request.email):
            raise ValidationError("Email is required")

        username = request.username.strip().lower() if request.username else None
        user = await self.user_store.find_by_username_or_email(username, request.email)
        if user is None:
            raise UserNotFoundError()

        if not await asyncio.to_thread(verify_password, request.password or "", user.password):
            raise InvalidCredentialsError()

        tokens = await self.issue_tokens(user.id)

        logged_in = await self.user_store.get(user.id)
        if logged_in is None:
            raise UpstreamError("Login failed")

        logger.info(f"User logged in: {logged_in.username}")
        return SessionResult(user=PublicUser.from_user(logged_in), tokens=tokens)

    async def logout_user(self, user_id: str) -> None:
        """Remove the stored refresh token. Calling it twice is harmless."""
        await self.user_store.update(user_id, {"refreshToken": None})
        logger.info(f"User logged out: {user_id}")

    async def refresh_access_token(self, incoming_token: Optional[str]) -> TokenPair:
        """
        Exchange the current refresh token for a new token pair.

        The presented token must equal the stored one exactly, so every
        earlier refresh token stops working as soon as a new pair is issued.

        Raises:
            AuthError: Token missing (401)
            InvalidTokenError: Token invalid, expired, unknown or superseded (401)
        """
        if not incoming_token:
            raise AuthError("Refresh token is required")

        try:
            payload = verify_refresh_token(incoming_token, settings=self.settings)
        except JWTError as e:
            logger.info(f"Refresh token rejected: {e}")
            raise InvalidTokenError("Invalid or expired refresh token") from e

        user = await self.user_store.get(payload["sub"])
        if user is None:
            raise InvalidTokenError("Invalid refresh token")

        if incoming_token != user.refresh_token:
            raise InvalidTokenError("Refresh token is expired or used")

        return await self.issue_tokens(user.id)

    async def authenticate(self, access_token: Optional[str]) -> User:
        """
        Resolve the user behind an access token.

        Raises:
            AuthError: Token missing (401)
            InvalidTokenError: Token invalid or its user no longer exists (401)
        """
        if not access_token:
            raise AuthError("Unauthorized request")

        try:
            payload = verify_access_token(access_token, settings=self.settings)
        except JWTError as e:
            raise InvalidTokenError("Invalid access token") from e

        user = await self.user_store.get(payload["sub"])
        if user is None:
            raise InvalidTokenError("Invalid access token")
        return user
