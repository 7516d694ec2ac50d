import io
from pathlib import Path

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient

from api.dependencies import get_asset_store, get_user_store
from api.main import app
from api.services.auth_service import AuthService
from api.services.user_store import InMemoryUserStore
from api.utils.file_handler import FileHandler
from config import get_settings, get_settings_for_testing
from exceptions import AssetDeleteError, AssetUploadError
from models import UploadedAsset

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeAssetStore:
    """Asset store double that records every upload and delete."""

    def __init__(self):
        self.uploads: list[str] = []
        self.deleted: list[str] = []
        self.fail_upload_markers: set[str] = set()
        self.fail_delete = False

    async def upload(self, local_path):
        path = Path(local_path)
        self.uploads.append(path.name)
        try:
            if any(marker in path.name for marker in self.fail_upload_markers):
                raise AssetUploadError(f"Failed to upload {path.name}", str(path))
            number = len(self.uploads)
            return UploadedAsset(
                url=f"https://res.cloudinary.com/demo/image/upload/asset-{number}.png",
                public_id=f"asset-{number}",
                size=path.stat().st_size,
            )
        finally:
            path.unlink(missing_ok=True)

    async def delete(self, public_id):
        self.deleted.append(public_id)
        if self.fail_delete:
            raise AssetDeleteError(public_id, "not found")
        return {"result": "ok"}


def make_upload(filename: str = "avatar.png", content: bytes = PNG_BYTES) -> UploadFile:
    return UploadFile(file=io.BytesIO(content), filename=filename)


@pytest.fixture
def settings(tmp_path):
    return get_settings_for_testing(temp_upload_dir=str(tmp_path / "temp"))


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def asset_store():
    return FakeAssetStore()


@pytest.fixture
def file_handler(settings):
    return FileHandler(settings)


@pytest.fixture
def auth_service(user_store, asset_store, file_handler, settings):
    return AuthService(
        user_store=user_store,
        asset_store=asset_store,
        file_handler=file_handler,
        settings=settings,
    )


@pytest.fixture
def client(user_store, asset_store, settings):
    """TestClient wired to the in-memory user store and the fake asset store."""
    app.dependency_overrides[get_user_store] = lambda: user_store
    app.dependency_overrides[get_asset_store] = lambda: asset_store
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
