"""Profile image validation and storage."""

import base64
import binascii
import io
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from app.config import get_settings
from app.services.generator import random_string

ALLOWED_IMAGE_FORMATS = {"JPEG", "PNG"}


class FileService:
    """Stores base64-encoded profile images under ``UPLOAD_DIR/PROFILE_DIR``."""

    def profile_folder(self) -> Path:
        settings = get_settings()
        return Path(settings.UPLOAD_DIR) / settings.PROFILE_DIR

    def create_folders(self) -> None:
        """Create the upload and profile folders if missing."""
        self.profile_folder().mkdir(parents=True, exist_ok=True)

    def validate_image(self, image_base64: str) -> str | None:
        """Validate an encoded image (size + content type). Returns error message or None if valid."""
        settings = get_settings()
        try:
            data = base64.b64decode(image_base64)
        except (binascii.Error, ValueError):
            return "Only JPEG or PNG files are allowed"

        if len(data) > settings.MAX_IMAGE_SIZE_BYTES:
            return "Your profile image cannot be bigger than 2MB"

        # Format is detected from content, not from any client-supplied name
        try:
            with Image.open(io.BytesIO(data)) as img:
                image_format = img.format
        except (UnidentifiedImageError, OSError):
            return "Only JPEG or PNG files are allowed"

        if image_format not in ALLOWED_IMAGE_FORMATS:
            return "Only JPEG or PNG files are allowed"
        return None

    def save_profile_image(self, image_base64: str) -> str:
        """Decode and write an image. Returns the stored file name."""
        self.create_folders()
        file_name = random_string(32)
        file_path = self.profile_folder() / file_name
        file_path.write_bytes(base64.b64decode(image_base64))
        return file_name

    def delete_profile_image(self, file_name: str) -> None:
        """Remove a stored image. Missing files are ignored."""
        file_path = self.profile_folder() / file_name
        if file_path.exists():
            os.remove(file_path)


_file_service: FileService | None = None


def get_file_service() -> FileService:
    """Get singleton file service instance."""
    global _file_service
    if _file_service is None:
        _file_service = FileService()
    return _file_service
