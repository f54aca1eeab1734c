"""Image upload validation and storage."""

import logging
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Protocol
from uuid import uuid4

from campus_site.config import MAX_UPLOAD_BYTES
from campus_site.domain.errors import StoreError, ValidationError

_logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES: dict[str, tuple[str, ...]] = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
}


@dataclass(frozen=True)
class ImageUpload:
    """An image file received with a write request."""

    filename: str
    content_type: str
    content: bytes


def validate_image(upload: ImageUpload, max_bytes: int = MAX_UPLOAD_BYTES) -> str:
    """Check type and size of an upload and return its normalized extension."""
    extension = PurePath(upload.filename).suffix.lower()
    allowed_extensions = ALLOWED_IMAGE_TYPES.get(upload.content_type.lower())
    if allowed_extensions is None or extension not in allowed_extensions:
        raise ValidationError(
            "Only image files are allowed (jpeg, jpg, png, gif, webp)"
        )
    if not upload.content:
        raise ValidationError("Image file is empty")
    if len(upload.content) > max_bytes:
        raise ValidationError(f"Image exceeds the {max_bytes} byte upload limit")
    return extension


class ImageStore(Protocol):
    """Storage interface for uploaded images."""

    def save(self, upload: ImageUpload) -> str:
        """Validate and store an image, returning its generated filename."""

    def delete(self, filename: str) -> None:
        """Remove a stored image if it exists."""


@dataclass
class LocalImageStore(ImageStore):
    """Stores images on local disk under generated unique filenames."""

    root: Path
    max_bytes: int = MAX_UPLOAD_BYTES

    def __post_init__(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def save(self, upload: ImageUpload) -> str:
        """Validate the upload and write it under a fresh filename."""
        extension = validate_image(upload, self.max_bytes)
        filename = f"{uuid4().hex}{extension}"
        try:
            (self.root / filename).write_bytes(upload.content)
        except OSError as exc:
            raise StoreError(f"Failed to store image {upload.filename}") from exc
        _logger.info(
            "Stored upload: filename=%s bytes=%s", filename, len(upload.content)
        )
        return filename

    def delete(self, filename: str) -> None:
        """Delete a stored image; missing files are ignored."""
        path = self.root / PurePath(filename).name
        try:
            path.unlink(missing_ok=True)
        except OSError:
            _logger.warning("Failed to delete upload: filename=%s", filename)
