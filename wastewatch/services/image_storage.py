"""
Image storage service.

Normalizes uploaded photos to JPEG (EXIF orientation applied, transparency
flattened on white, shrunk to fit a square without upscaling) and stores
them on the local filesystem, where they are served as static files.
"""

import asyncio
import io
import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from wastewatch.config.settings import Settings, get_settings
from wastewatch.services.errors import InvalidInputError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}


@dataclass
class UploadedImage:
    """An uploaded file read into memory."""

    filename: str
    content_type: str
    data: bytes


async def read_uploads(files: Optional[Iterable[UploadFile]]) -> List[UploadedImage]:
    """Read multipart files into memory, skipping empty file fields."""
    images = []
    for upload in files or []:
        data = await upload.read()
        if not data and not upload.filename:
            continue
        images.append(
            UploadedImage(
                filename=upload.filename or "",
                content_type=(upload.content_type or "").split(";")[0].strip().lower(),
                data=data,
            )
        )
    return images


def normalize_image(data: bytes, max_dimension: int = 1200, quality: int = 80) -> bytes:
    """
    Convert image data to a size-bounded RGB JPEG.

    Raises:
        InvalidInputError: If the data cannot be decoded as an image
    """
    try:
        img = Image.open(io.BytesIO(data))
        img = ImageOps.exif_transpose(img)

        # Convert to RGB if necessary
        if img.mode in ("RGBA", "LA", "P"):
            # Create white background for transparency
            if img.mode != "RGBA":
                img = img.convert("RGBA")
            background = Image.new("RGB", img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            img = background
        elif img.mode != "RGB":
            img = img.convert("RGB")

        # thumbnail() keeps the aspect ratio and never enlarges
        img.thumbnail((max_dimension, max_dimension))

        output = io.BytesIO()
        img.save(output, format="JPEG", quality=quality)
        return output.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise InvalidInputError(f"Image processing failed: {e}")


class ImageStorage:
    """Stores normalized report images under one directory."""

    def __init__(
        self,
        upload_dir: Path,
        url_prefix: str = "/uploads",
        max_dimension: int = 1200,
        quality: int = 80,
        max_size_bytes: int = 5 * 1024 * 1024,
        max_files: int = 5,
    ):
        self.upload_dir = Path(upload_dir).resolve()
        self.url_prefix = url_prefix.rstrip("/")
        self.max_dimension = max_dimension
        self.quality = quality
        self.max_size_bytes = max_size_bytes
        self.max_files = max_files

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ImageStorage":
        settings = settings or get_settings()
        return cls(
            upload_dir=settings.upload_dir,
            url_prefix=settings.upload_url_prefix,
            max_dimension=settings.image_max_dimension,
            quality=settings.image_jpeg_quality,
            max_size_bytes=settings.max_upload_size_bytes,
            max_files=settings.max_images_per_request,
        )

    def ensure_directory(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def validate(self, images: List[UploadedImage]) -> None:
        """
        Check count, type and size of a batch of uploads.

        Raises:
            InvalidInputError: On the first violation found
        """
        if len(images) > self.max_files:
            raise InvalidInputError(f"Too many files. Maximum is {self.max_files} images")

        max_mb = self.max_size_bytes // (1024 * 1024)
        for image in images:
            if image.content_type not in ALLOWED_IMAGE_TYPES:
                raise InvalidInputError("Only JPEG, PNG, and WebP images are allowed")
            if len(image.data) > self.max_size_bytes:
                raise InvalidInputError(f"File too large. Maximum size is {max_mb}MB")

    def _generate_name(self) -> str:
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}.jpg"

    def _write(self, data: bytes) -> Dict[str, str]:
        jpeg = normalize_image(data, self.max_dimension, self.quality)
        name = self._generate_name()
        self.ensure_directory()
        (self.upload_dir / name).write_bytes(jpeg)
        logger.debug(f"Stored image {name}: {len(data)} bytes -> {len(jpeg)} bytes")
        return {"url": f"{self.url_prefix}/{name}", "storageId": name}

    async def save(self, data: bytes) -> Dict[str, str]:
        """
        Normalize and store one image.

        Returns:
            Image reference ``{"url": ..., "storageId": ...}``
        """
        return await asyncio.to_thread(self._write, data)

    async def save_all(self, images: List[UploadedImage]) -> List[Dict[str, str]]:
        """
        Store a batch of uploads in order.

        If one image fails, the images already stored for the batch are
        removed before the error propagates.
        """
        saved: List[Dict[str, str]] = []
        try:
            for image in images:
                saved.append(await self.save(image.data))
        except (InvalidInputError, OSError):
            self.delete_all(saved)
            raise
        return saved

    def path_for(self, storage_id: str) -> Path:
        """
        Absolute path of a stored image.

        Raises:
            InvalidInputError: If the name points outside the upload directory
        """
        path = (self.upload_dir / storage_id).resolve()
        if not storage_id or path.parent != self.upload_dir:
            raise InvalidInputError(f"Invalid storage id: {storage_id}")
        return path

    def delete(self, storage_id: str) -> bool:
        """
        Remove a stored image, best effort.

        A missing file counts as deleted; any other failure is logged and
        reported as False.
        """
        try:
            self.path_for(storage_id).unlink(missing_ok=True)
            return True
        except (OSError, InvalidInputError) as e:
            logger.warning(f"Failed to delete image {storage_id}: {e}")
            return False

    def delete_all(self, refs: Iterable[Dict[str, str]]) -> int:
        """Remove every referenced image; returns how many were removed."""
        deleted = 0
        for ref in refs:
            storage_id = ref.get("storageId")
            if storage_id and self.delete(storage_id):
                deleted += 1
        return deleted
