import asyncio
from datetime import timedelta
from pathlib import Path

import pytest

from api.models.requests import LoginRequest, RegisterRequest
from api.services.auth_service import AuthService
from api.services.user_store import InMemoryUserStore
from api.utils.security import create_refresh_token, verify_access_token, verify_refresh_token
from exceptions import (
    AssetUploadError,
    AuthError,
    DocumentStoreError,
    DuplicateRecordError,
    InvalidCredentialsError,
    InvalidTokenError,
    RegistrationError,
    TokenIssueError,
    UserAlreadyExistsError,
    UserNotFoundError,
    ValidationError,
)

from conftest import FakeAssetStore, make_upload


def registration(**overrides) -> RegisterRequest:
    fields = {"fullname": "A B", "email": "a@x.com", "username": "ab", "password": "p1"}
    fields.update(overrides)
    return RegisterRequest(**fields)


class FailingCreateStore(InMemoryUserStore):
    async def create(self, fields):
        raise DocumentStoreError("Failed to create user")


class DuplicateOnCreateStore(InMemoryUserStore):
    async def create(self, fields):
        raise DuplicateRecordError("Duplicate key error: email")


class BrokenCoverAssetStore(FakeAssetStore):
    """Asset store whose SDK blows up on cover images."""

    async def upload(self, local_path):
        name = Path(local_path).name
        if "cover" in name:
            self.uploads.append(name)
            raise RuntimeError("connection reset by peer")
        return await super().upload(local_path)


class VanishingStore(InMemoryUserStore):
    """Creates records but cannot read them back."""

    async def get(self, user_id):
        return None


def service_with(store, asset_store, file_handler, settings) -> AuthService:
    return AuthService(store, asset_store, file_handler=file_handler, settings=settings)


# =============================================================================
# Registration
# =============================================================================

@pytest.mark.asyncio
async def test_register_returns_sanitized_user(auth_service, asset_store):
    """Registering without a cover image stores the avatar and an empty cover."""
    user = await auth_service.register_user(registration(), make_upload())

    body = user.to_response()
    assert "password" not in body
    assert "refreshToken" not in body
    assert body["avatar"].startswith("https://")
    assert body["coverImage"] == ""
    assert body["username"] == "ab"
    assert len(asset_store.uploads) == 1


@pytest.mark.asyncio
async def test_register_lowercases_username_and_hashes_password(auth_service, user_store):
    user = await auth_service.register_user(registration(username="MixedCase"), make_upload())

    stored = await user_store.get(user.id)
    assert stored.username == "mixedcase"
    assert stored.password != "p1"
    assert stored.password.startswith("$2")


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["fullname", "email", "username", "password"])
@pytest.mark.parametrize("value", [None, "", "   "])
async def test_register_blank_field_is_rejected_before_upload(auth_service, asset_store, user_store, field, value):
    with pytest.raises(ValidationError, match="All fields are required"):
        await auth_service.register_user(registration(**{field: value}), make_upload())

    assert asset_store.uploads == []
    assert await user_store.find_by_username_or_email("ab", "a@x.com") is None


@pytest.mark.asyncio
async def test_register_duplicate_is_rejected_before_upload(auth_service, asset_store):
    await auth_service.register_user(registration(), make_upload())
    uploads_before = list(asset_store.uploads)

    with pytest.raises(UserAlreadyExistsError):
        await auth_service.register_user(registration(email="other@x.com", username="AB"), make_upload())
    with pytest.raises(UserAlreadyExistsError):
        await auth_service.register_user(registration(username="other"), make_upload())

    assert asset_store.uploads == uploads_before


@pytest.mark.asyncio
async def test_register_without_avatar_is_rejected_before_upload(auth_service, asset_store):
    with pytest.raises(ValidationError, match="Avatar file is required"):
        await auth_service.register_user(registration(), None, make_upload("cover.png"))

    with pytest.raises(ValidationError, match="Avatar file is required"):
        await auth_service.register_user(registration(), make_upload(filename=""))

    assert asset_store.uploads == []


@pytest.mark.asyncio
async def test_register_avatar_upload_failure_creates_nothing(auth_service, asset_store, user_store):
    asset_store.fail_upload_markers.add("avatar")

    with pytest.raises(AssetUploadError, match="Failed to upload avatar"):
        await auth_service.register_user(registration(), make_upload("avatar.png"))

    assert asset_store.deleted == []
    assert await user_store.find_by_username_or_email("ab", "a@x.com") is None


@pytest.mark.asyncio
async def test_register_cover_upload_failure_is_not_fatal(auth_service, asset_store):
    asset_store.fail_upload_markers.add("cover")

    user = await auth_service.register_user(registration(), make_upload(), make_upload("cover.png"))

    assert user.cover_image == ""
    assert user.avatar
    assert len(asset_store.uploads) == 2


@pytest.mark.asyncio
async def test_register_unexpected_cover_error_keeps_avatar(user_store, file_handler, settings):
    asset_store = BrokenCoverAssetStore()
    service = service_with(user_store, asset_store, file_handler, settings)

    user = await service.register_user(registration(), make_upload(), make_upload("cover.png"))

    assert user.cover_image == ""
    assert user.avatar.endswith("asset-1.png")
    assert asset_store.deleted == []
    assert (await user_store.get(user.id)).avatar == user.avatar
    assert list(file_handler.temp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_register_with_cover_image(auth_service, asset_store):
    user = await auth_service.register_user(registration(), make_upload(), make_upload("cover.jpg"))

    assert user.cover_image.startswith("https://")
    assert user.cover_image != user.avatar


@pytest.mark.asyncio
async def test_register_create_failure_deletes_each_uploaded_asset_once(asset_store, file_handler, settings):
    service = service_with(FailingCreateStore(), asset_store, file_handler, settings)

    with pytest.raises(RegistrationError, match="Failed to register user"):
        await service.register_user(registration(), make_upload(), make_upload("cover.png"))

    assert sorted(asset_store.deleted) == ["asset-1", "asset-2"]


@pytest.mark.asyncio
async def test_register_duplicate_key_on_create_reports_conflict(asset_store, file_handler, settings):
    service = service_with(DuplicateOnCreateStore(), asset_store, file_handler, settings)

    with pytest.raises(UserAlreadyExistsError, match="Username or email already exists"):
        await service.register_user(registration(), make_upload())

    assert asset_store.deleted == ["asset-1"]


@pytest.mark.asyncio
async def test_register_reload_failure_triggers_cleanup(asset_store, file_handler, settings):
    service = service_with(VanishingStore(), asset_store, file_handler, settings)

    with pytest.raises(RegistrationError, match="Failed to create user after file upload"):
        await service.register_user(registration(), make_upload(), make_upload("cover.png"))

    assert sorted(asset_store.deleted) == ["asset-1", "asset-2"]


@pytest.mark.asyncio
async def test_cleanup_errors_do_not_mask_original_error(asset_store, file_handler, settings):
    asset_store.fail_delete = True
    service = service_with(FailingCreateStore(), asset_store, file_handler, settings)

    with pytest.raises(RegistrationError):
        await service.register_user(registration(), make_upload(), make_upload("cover.png"))

    assert sorted(asset_store.deleted) == ["asset-1", "asset-2"]


@pytest.mark.asyncio
async def test_register_removes_staged_files(auth_service, file_handler):
    await auth_service.register_user(registration(), make_upload(), make_upload("cover.png"))

    assert list(file_handler.temp_dir.iterdir()) == []


# =============================================================================
# Token issuer
# =============================================================================

@pytest.mark.asyncio
async def test_issue_tokens_overwrites_stored_refresh_token(auth_service, user_store):
    user = await auth_service.register_user(registration(), make_upload())

    first = await auth_service.issue_tokens(user.id)
    second = await auth_service.issue_tokens(user.id)

    stored = await user_store.get(user.id)
    assert first.refresh_token != second.refresh_token
    assert stored.refresh_token == second.refresh_token


@pytest.mark.asyncio
async def test_issue_tokens_for_unknown_user_fails(auth_service):
    with pytest.raises(TokenIssueError):
        await auth_service.issue_tokens("507f1f77bcf86cd799439011")


# =============================================================================
# Login
# =============================================================================

@pytest.mark.asyncio
async def test_login_issues_distinct_tokens_and_stores_refresh_token(auth_service, user_store, settings):
    user = await auth_service.register_user(registration(), make_upload())

    session = await auth_service.login_user(LoginRequest(email="a@x.com", password="p1"))

    assert session.tokens.access_token
    assert session.tokens.refresh_token
    assert session.tokens.access_token != session.tokens.refresh_token
    stored = await user_store.get(user.id)
    assert stored.refresh_token == session.tokens.refresh_token
    assert verify_access_token(session.tokens.access_token, settings)["sub"] == user.id
    assert session.user.id == user.id


@pytest.mark.asyncio
async def test_login_by_username(auth_service):
    await auth_service.register_user(registration(), make_upload())

    session = await auth_service.login_user(LoginRequest(email="unknown@x.com", username="AB", password="p1"))

    assert session.user.username == "ab"


@pytest.mark.asyncio
async def test_login_requires_email(auth_service):
    with pytest.raises(ValidationError, match="Email is required"):
        await auth_service.login_user(LoginRequest(username="ab", password="p1"))


@pytest.mark.asyncio
async def test_login_unknown_user(auth_service):
    with pytest.raises(UserNotFoundError):
        await auth_service.login_user(LoginRequest(email="nobody@x.com", password="p1"))


@pytest.mark.asyncio
async def test_failed_login_does_not_touch_refresh_token(auth_service, user_store):
    user = await auth_service.register_user(registration(), make_upload())
    session = await auth_service.login_user(LoginRequest(email="a@x.com", password="p1"))

    with pytest.raises(InvalidCredentialsError):
        await auth_service.login_user(LoginRequest(email="a@x.com", password="wrong"))
    with pytest.raises(InvalidCredentialsError):
        await auth_service.login_user(LoginRequest(email="a@x.com"))
    with pytest.raises(UserNotFoundError):
        await auth_service.login_user(LoginRequest(email="b@x.com", password="p1"))

    stored = await user_store.get(user.id)
    assert stored.refresh_token == session.tokens.refresh_token


@pytest.mark.asyncio
async def test_password_hashing_runs_in_worker_thread(auth_service, monkeypatch):
    offloaded = []
    original_to_thread = asyncio.to_thread

    async def recording_to_thread(func, *args, **kwargs):
        offloaded.append(func.__name__)
        return await original_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

    await auth_service.register_user(registration(), make_upload())
    await auth_service.login_user(LoginRequest(email="a@x.com", password="p1"))

    assert offloaded == ["hash_password", "verify_password"]


# =============================================================================
# Refresh and logout
# =============================================================================

@pytest.mark.asyncio
async def test_refresh_rotates_and_rejects_previous_token(auth_service, user_store, settings):
    user = await auth_service.register_user(registration(), make_upload())
    session = await auth_service.login_user(LoginRequest(email="a@x.com", password="p1"))

    refreshed = await auth_service.refresh_access_token(session.tokens.refresh_token)

    assert refreshed.refresh_token != session.tokens.refresh_token
    assert verify_refresh_token(refreshed.refresh_token, settings)["sub"] == user.id
    with pytest.raises(InvalidTokenError, match="expired or used"):
        await auth_service.refresh_access_token(session.tokens.refresh_token)

    again = await auth_service.refresh_access_token(refreshed.refresh_token)
    stored = await user_store.get(user.id)
    assert stored.refresh_token == again.refresh_token


@pytest.mark.asyncio
async def test_refresh_requires_token(auth_service):
    with pytest.raises(AuthError, match="Refresh token is required"):
        await auth_service.refresh_access_token(None)


@pytest.mark.asyncio
async def test_refresh_with_invalid_or_expired_token(auth_service, settings):
    user = await auth_service.register_user(registration(), make_upload())
    session = await auth_service.login_user(LoginRequest(email="a@x.com", password="p1"))
    expired = create_refresh_token(user.id, expires_delta=timedelta(seconds=-5), settings=settings)

    with pytest.raises(InvalidTokenError):
        await auth_service.refresh_access_token("not-a-jwt")
    with pytest.raises(InvalidTokenError):
        await auth_service.refresh_access_token(expired)
    with pytest.raises(InvalidTokenError):
        await auth_service.refresh_access_token(session.tokens.access_token)


@pytest.mark.asyncio
async def test_refresh_for_unknown_user(auth_service, settings):
    token = create_refresh_token("507f1f77bcf86cd799439011", settings=settings)

    with pytest.raises(InvalidTokenError, match="Invalid refresh token"):
        await auth_service.refresh_access_token(token)


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token_and_is_idempotent(auth_service, user_store):
    user = await auth_service.register_user(registration(), make_upload())
    session = await auth_service.login_user(LoginRequest(email="a@x.com", password="p1"))

    await auth_service.logout_user(user.id)
    await auth_service.logout_user(user.id)

    stored = await user_store.get(user.id)
    assert stored.refresh_token is None
    with pytest.raises(InvalidTokenError):
        await auth_service.refresh_access_token(session.tokens.refresh_token)


@pytest.mark.asyncio
async def test_authenticate_access_token(auth_service):
    user = await auth_service.register_user(registration(), make_upload())
    session = await auth_service.login_user(LoginRequest(email="a@x.com", password="p1"))

    current = await auth_service.authenticate(session.tokens.access_token)

    assert current.id == user.id
    with pytest.raises(AuthError):
        await auth_service.authenticate(None)
    with pytest.raises(InvalidTokenError):
        await auth_service.authenticate(session.tokens.refresh_token)
