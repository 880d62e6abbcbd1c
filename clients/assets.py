"""
Validation and storage-path rules for client logo and background images.
"""

import re
import time
from dataclasses import dataclass
from typing import Optional

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"]

MAX_LOGO_SIZE = 2 * 1024 * 1024
MAX_BACKGROUND_SIZE = 5 * 1024 * 1024

ASSET_TYPES = ("logo", "background")

_ASSET_FOLDERS = {
    "logo": "logos",
    "background": "backgrounds",
}


@dataclass
class UploadedAsset:
    """An image file read from a multipart request."""

    file_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def read_uploaded_file(file_storage) -> Optional[UploadedAsset]:
    """
    Read a multipart file part into an UploadedAsset.

    Empty parts (no file name or zero bytes) are treated as absent.
    """
    if file_storage is None or not file_storage.filename:
        return None

    data = file_storage.read()
    if not data:
        return None

    return UploadedAsset(
        file_name=file_storage.filename,
        content_type=file_storage.content_type or "application/octet-stream",
        data=data,
    )


def _validate_image(asset: Optional[UploadedAsset], max_size: int) -> Optional[str]:
    if asset is None:
        return "No file provided"

    if asset.content_type not in ALLOWED_IMAGE_TYPES:
        return f"Invalid file type. Allowed types: {', '.join(ALLOWED_IMAGE_TYPES)}"

    if asset.size > max_size:
        return f"File size exceeds maximum allowed size of {max_size // (1024 * 1024)}MB"

    return None


def validate_logo_file(asset: Optional[UploadedAsset]) -> Optional[str]:
    """Return an error message, or None when the logo is acceptable (<= 2MB)."""
    return _validate_image(asset, MAX_LOGO_SIZE)


def validate_background_image(asset: Optional[UploadedAsset]) -> Optional[str]:
    """Return an error message, or None when the background is acceptable (<= 5MB)."""
    return _validate_image(asset, MAX_BACKGROUND_SIZE)


def validate_asset(asset: Optional[UploadedAsset], asset_type: str) -> Optional[str]:
    if asset_type == "logo":
        return validate_logo_file(asset)
    return validate_background_image(asset)


def generate_storage_path(client_id: str, file_name: str, asset_type: str) -> str:
    """
    Build the object path for a client asset.

    Format: ``clients/{client_id}/{logos|backgrounds}/{name}_{millis}.{ext}``

    Raises:
        ValueError: If the client ID, file name or asset type is invalid
    """
    if not isinstance(client_id, str) or not client_id.strip():
        raise ValueError("Client ID is required and must be a non-empty string")
    if not isinstance(file_name, str) or not file_name.strip():
        raise ValueError("File name is required and must be a non-empty string")
    if asset_type not in _ASSET_FOLDERS:
        raise ValueError('File type must be either "logo" or "background"')

    sanitized = re.sub(r"[^a-z0-9.-]", "_", file_name.strip().lower())
    extension = sanitized.rsplit(".", 1)[-1]
    stem = re.sub(r"\.[^/.]+$", "", sanitized).replace(".", "_")
    timestamp = int(time.time() * 1000)

    return f"clients/{client_id.strip()}/{_ASSET_FOLDERS[asset_type]}/{stem}_{timestamp}.{extension}"
