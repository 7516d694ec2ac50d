"""
File Upload Handler
===================

Async staging of multipart uploads in the temp directory before they are
forwarded to the asset host, with validation and cleanup.
"""

import logging
import uuid
import aiofiles
from pathlib import Path
from typing import Optional
from fastapi import UploadFile, HTTPException, status

from config import Settings, get_settings
from exceptions import ValidationError


logger = logging.getLogger(__name__)


class FileHandler:
    """Handle file uploads and temporary file management."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize FileHandler with settings from config."""
        self.settings = settings or get_settings()
        self.temp_dir = Path(self.settings.temp_upload_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

        self.max_size_bytes = self.settings.max_upload_size_mb * 1024 * 1024
        self.allowed_formats = [f.lower() for f in self.settings.allowed_image_formats]

    def staged_name(self, filename: str) -> str:
        """
        Build a collision-free staging name for an uploaded file.

        A random UUID prefix keeps concurrent uploads of files with the same
        name apart, even within the same millisecond.
        """
        return f"{uuid.uuid4().hex}-{Path(filename).name}"

    async def save_upload_file(self, upload_file: UploadFile) -> Path:
        """
        Save uploaded file to temporary location with validation.

        Args:
            upload_file: FastAPI UploadFile object from request

        Returns:
            Path to the saved file

        Raises:
            ValidationError: If the file has no name or an unsupported format
            HTTPException: If file size exceeds limit
        """
        if not upload_file.filename:
            raise ValidationError("Filename is required")

        file_ext = Path(upload_file.filename).suffix.lower()
        if file_ext not in self.allowed_formats:
            raise ValidationError(
                f"File format '{file_ext}' not supported. "
                f"Allowed formats: {', '.join(self.allowed_formats)}"
            )

        temp_file_path = self.temp_dir / self.staged_name(upload_file.filename)

        # Save file with size validation (chunked upload)
        total_size = 0
        chunk_size = 8192  # 8KB chunks

        try:
            async with aiofiles.open(temp_file_path, 'wb') as f:
                while True:
                    chunk = await upload_file.read(chunk_size)
                    if not chunk:
                        break

                    total_size += len(chunk)

                    if total_size > self.max_size_bytes:
                        raise HTTPException(
                            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                            detail=f"File too large. Maximum size: {self.settings.max_upload_size_mb}MB"
                        )

                    await f.write(chunk)

        except HTTPException:
            temp_file_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            temp_file_path.unlink(missing_ok=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error saving file: {str(e)}"
            )

        logger.debug(f"Staged upload {upload_file.filename} at {temp_file_path} ({total_size} bytes)")
        return temp_file_path

    def cleanup_file(self, file_path: Path | str) -> None:
        """
        Delete temporary file.

        Args:
            file_path: Path to file to delete (can be Path or string)

        Note:
            This is a best-effort cleanup. Errors are logged but not raised
            so a leftover temp file never changes the response.
        """
        try:
            Path(file_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete temp file {file_path}: {e}")
