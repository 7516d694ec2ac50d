"""
Asset Store Service
===================

Forwards staged files to Cloudinary and deletes them again on request.

The Cloudinary SDK is blocking, so every call runs in a worker thread via
asyncio.to_thread() to keep the event loop free.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from config import Settings, get_settings
from exceptions import AssetDeleteError, AssetUploadError, ConfigurationError
from models import UploadedAsset


logger = logging.getLogger(__name__)


class AssetStoreProtocol(Protocol):
    """
    Interface for the remote asset store.

    `upload` always removes the local file, whether the upload succeeded
    or not.
    """

    async def upload(self, local_path: Path | str) -> UploadedAsset: ...

    async def delete(self, public_id: str) -> dict: ...


class CloudinaryAssetStore:
    """
    Asset store backed by Cloudinary.

    Usage:
        store = CloudinaryAssetStore(settings)
        asset = await store.upload("/tmp/avatar.png")
        await store.delete(asset.public_id)
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

        for name in ("cloudinary_cloud_name", "cloudinary_api_key", "cloudinary_api_secret"):
            if not getattr(self.settings, name):
                raise ConfigurationError(name, "Cloudinary configuration missing in environment variables")

        cloudinary.config(
            cloud_name=self.settings.cloudinary_cloud_name,
            api_key=self.settings.cloudinary_api_key,
            api_secret=self.settings.cloudinary_api_secret,
            secure=True,
        )
        self.upload_options = {
            "resource_type": "auto",
            "use_filename": True,
            "unique_filename": False,
            "overwrite": True,
        }
        if self.settings.cloudinary_folder:
            self.upload_options["folder"] = self.settings.cloudinary_folder

    def _upload_sync(self, local_path: Path) -> UploadedAsset:
        if not local_path.exists():
            raise AssetUploadError(f"File not found at path: {local_path}", str(local_path))

        logger.info(f"Uploading file: {local_path}")
        try:
            response = cloudinary.uploader.upload(str(local_path), **self.upload_options)
        except (CloudinaryError, OSError) as e:
            logger.error(f"Cloudinary upload error for {local_path}: {e}")
            raise AssetUploadError(f"Failed to upload {local_path.name}", str(local_path)) from e
        finally:
            local_path.unlink(missing_ok=True)
            logger.debug(f"Local file deleted: {local_path}")

        asset = UploadedAsset(
            url=response.get("secure_url") or response.get("url") or "",
            public_id=response.get("public_id", ""),
            size=response.get("bytes", 0),
        )
        logger.info(f"File uploaded to Cloudinary: {asset.public_id} ({asset.size} bytes)")
        return asset

    async def upload(self, local_path: Path | str) -> UploadedAsset:
        """
        Upload a staged file and remove it from local disk.

        Raises:
            AssetUploadError: If the file is missing or Cloudinary fails
        """
        return await asyncio.to_thread(self._upload_sync, Path(local_path))

    def _delete_sync(self, public_id: str) -> dict:
        logger.info(f"Deleting from Cloudinary: {public_id}")
        try:
            result = cloudinary.uploader.destroy(public_id)
        except (CloudinaryError, OSError) as e:
            raise AssetDeleteError(public_id, str(e)) from e

        if result.get("result") != "ok":
            raise AssetDeleteError(public_id, str(result.get("result")))

        logger.info(f"Successfully deleted from Cloudinary: {public_id}")
        return result

    async def delete(self, public_id: str) -> dict:
        """
        Delete an asset by its public id.

        Raises:
            AssetDeleteError: If no id is given or Cloudinary does not answer "ok"
        """
        if not public_id:
            raise AssetDeleteError("", "No publicId provided")
        return await asyncio.to_thread(self._delete_sync, public_id)


def create_asset_store(settings: Optional[Settings] = None) -> AssetStoreProtocol:
    """
    Factory function to create the asset store.

    Raises:
        ConfigurationError: If Cloudinary credentials are missing
    """
    return CloudinaryAssetStore(settings=settings)
